"""Blocks command: apply <<<mode>>>...<<<end>>> transforms to a file."""

import logging
import sys
from argparse import Namespace
from pathlib import Path

from aiflow.exceptions import UnknownTransformMode
from aiflow.variables.blocks import BlockTransformer


logger = logging.getLogger(__name__)


def transform_blocks(args: Namespace) -> int:
    """Print the transformed contents of ``args.file``."""
    try:
        if args.file == '-':
            text = sys.stdin.read()
        else:
            text = Path(args.file).read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"Cannot read {args.file}: {e}")
        return 1

    try:
        sys.stdout.write(BlockTransformer().transform(text))
    except UnknownTransformMode as e:
        logger.error(str(e))
        return 2
    return 0
