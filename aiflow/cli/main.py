"""Main CLI entry point for aiflow."""

import argparse
import sys
from typing import Optional

from .commands import run_workflow, transform_blocks


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the aiflow CLI."""
    parser = argparse.ArgumentParser(
        prog='aiflow',
        description='Declarative multi-step generation workflows'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Run command
    run_parser = subparsers.add_parser('run', help='Run a workflow')
    run_parser.add_argument(
        'workflow',
        type=str,
        help='Path to workflow YAML or XML file'
    )
    run_parser.add_argument(
        '--context',
        action='append',
        metavar='KEY=VALUE',
        help='Initial variables (can be specified multiple times)'
    )
    run_parser.add_argument(
        '--context-file',
        type=str,
        help='Path to JSON file containing initial variables'
    )
    run_parser.add_argument(
        '--backend',
        type=str,
        help='Backend selector (overrides the workflow)'
    )
    run_parser.add_argument(
        '--backend-uri',
        type=str,
        help='URI of the default backend'
    )
    run_parser.add_argument(
        '--model',
        type=str,
        help='Model of the default backend'
    )
    run_parser.add_argument(
        '--max-retries',
        type=int,
        default=5,
        help='Retries per step after the first attempt'
    )
    run_parser.add_argument(
        '--retry-delay',
        type=int,
        default=0,
        help='Delay between attempts in milliseconds'
    )
    run_parser.add_argument(
        '--transform-blocks',
        action='store_true',
        help='Apply <<<mode>>>...<<<end>>> block transforms to the result'
    )
    run_parser.add_argument(
        '--output',
        type=str,
        metavar='FILE',
        help='Write the result to FILE instead of stdout'
    )
    run_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate without execution'
    )
    run_parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    run_parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    run_parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    run_parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help='Set log level'
    )

    # Blocks command
    blocks_parser = subparsers.add_parser('blocks', help='Apply block transforms to a file')
    blocks_parser.add_argument(
        'file',
        type=str,
        help="Input file ('-' for stdin)"
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'run':
        return run_workflow(parsed_args)
    elif parsed_args.command == 'blocks':
        return transform_blocks(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
