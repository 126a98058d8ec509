"""
Execution helpers for the step interpreter.
"""

from .retry import RetryPolicy

__all__ = [
    "RetryPolicy",
]
