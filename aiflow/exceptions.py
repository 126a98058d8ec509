"""aiflow exceptions."""

from typing import List, Optional
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single workflow definition error."""
    message: str
    path: str = ""
    exit_code: int = 2


class WorkflowValidationError(Exception):
    """Raised when a workflow definition fails validation.

    This exception is raised by the loader when validation errors occur,
    allowing the CLI to catch it and map to appropriate exit codes.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        self.exit_code = 2  # Default validation exit code

        messages = []
        for error in errors:
            where = f" ({error.path})" if error.path else ""
            messages.append(f"Validation error{where}: {error.message}")

        super().__init__("\n".join(messages))


class WorkflowError(Exception):
    """Base class for errors raised while executing a workflow."""


class ValidationFailure(WorkflowError):
    """A candidate result was rejected. Only ever drives the retry loop."""

    def __init__(self, message: str, variable: Optional[str] = None):
        self.variable = variable
        super().__init__(message)


class RequiredVariableMissing(ValidationFailure):
    """A required generated variable came back empty."""


class PatternMismatch(ValidationFailure):
    """A generated variable does not match its declared pattern."""


class OptionMismatch(ValidationFailure):
    """A generated variable is not one of its declared options."""


class ValidatorRejected(ValidationFailure):
    """A validator's verdict differs from its expectation."""

    def __init__(self, message: str, expected: str, verdict: str, explanation: str = ""):
        self.expected = expected
        self.verdict = verdict
        self.explanation = explanation
        super().__init__(message)


class RetryBudgetExhausted(WorkflowError):
    """All generation attempts of a step failed validation."""

    def __init__(self, step_name: str, attempts: int, last_failure: Optional[ValidationFailure] = None):
        self.step_name = step_name
        self.attempts = attempts
        self.last_failure = last_failure
        reason = f": {last_failure}" if last_failure else ""
        super().__init__(
            f"Step '{step_name}' failed validation after {attempts} attempts{reason}"
        )


class BackendError(WorkflowError):
    """The generation backend could not produce a usable structured result."""


class RetrievalError(WorkflowError):
    """A download could not be fetched."""


class UnknownTransformMode(WorkflowError):
    """A <<<mode>>> block names a transform that does not exist."""


class SelfReferentialTemplate(WorkflowError):
    """Template substitution did not reach a fixed point."""


class InvalidDateExpression(WorkflowError):
    """A ${@date|...} relative expression could not be parsed."""


class ScopeError(WorkflowError):
    """A step needs a scope but the working value is a plain string."""
