"""CLI command handlers."""

from .run import run_workflow
from .blocks import transform_blocks

__all__ = ['run_workflow', 'transform_blocks']
