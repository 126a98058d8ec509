"""aiflow: declarative multi-step generation workflows."""

from .loader import WorkflowLoader
from .model import WorkflowDocument, Step
from .workflow import WorkflowEngine

__all__ = ['WorkflowLoader', 'WorkflowDocument', 'Step', 'WorkflowEngine']

__version__ = '0.1.0'
