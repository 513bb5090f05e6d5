"""Command-line interface for table option normalization."""

import argparse
import sys
import logging
from pathlib import Path

import yaml

from .config import Config, load_options_file
from .normalizer import MissingContentError, OptionsNormalizer
from .themes import UnknownThemeError


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Normalize table options into a fully resolved configuration.'
    )

    parser.add_argument(
        'options',
        nargs='+',
        help='YAML option files, applied in order (later files take precedence)'
    )

    parser.add_argument(
        '--config',
        help='Path to configuration file with session values and document defaults'
    )

    parser.add_argument(
        '--theme',
        help='Theme overriding the options (striped, grid, plain, auto)'
    )

    parser.add_argument(
        '--scale-factor',
        type=float,
        help='Points per document unit (overrides config)'
    )

    parser.add_argument(
        '--log-level',
        help='Logging level (overrides config)'
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments(argv)

    # Load configuration
    try:
        if args.config:
            config = Config(args.config)
        else:
            config = Config.from_dict({}, Path.cwd())
        context = config.resolution_context()
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print(f"Please ensure the configuration file exists at: {args.config}")
        return 1
    except (yaml.YAMLError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return 1

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        layers = [config.default_options()]
        layers.extend(load_options_file(Path(path)) for path in args.options)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1
    except (yaml.YAMLError, ValueError) as e:
        print(f"Error loading options: {e}")
        return 1

    try:
        normalizer = OptionsNormalizer(context=context)
        normalized = normalizer.normalize(
            layers, theme=args.theme, scale_factor=args.scale_factor
        )
    except (UnknownThemeError, MissingContentError) as e:
        print(f"Error: {e}")
        return 1
    except ValueError as e:
        logging.exception("Error normalizing options")
        print(f"\nError normalizing options: {e}")
        return 1

    print(yaml.safe_dump(normalized.to_dict(), sort_keys=False, allow_unicode=True), end='')
    return 0


if __name__ == '__main__':
    sys.exit(main())
