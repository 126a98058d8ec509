"""Workflow execution module."""

from .engine import WorkflowEngine
from .context import ExecutionContext, DOWNLOAD_FAILED
from .interpreter import StepInterpreter
from .schema import build_schema

__all__ = ['WorkflowEngine', 'ExecutionContext', 'StepInterpreter', 'build_schema', 'DOWNLOAD_FAILED']
