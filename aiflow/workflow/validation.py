"""
Validation of generated results.

Generated-variable constraints are checked first, then the step's validators
with all pattern validators ahead of the AI-judged ones. The first problem
raises a ValidationFailure subclass, which the interpreter turns into a retry.
"""

import json
import re
from typing import TYPE_CHECKING, List, Mapping, Sequence

from ..exceptions import (
    OptionMismatch,
    PatternMismatch,
    RequiredVariableMissing,
    ValidatorRejected,
)
from ..model import GeneratedVariable, Step, Validator

if TYPE_CHECKING:
    from .interpreter import StepInterpreter


def judge_step(text: str) -> Step:
    """Build the yes/no question step used by AI-judged validators."""
    return Step(
        name="validator",
        prompt=text,
        variables=(
            GeneratedVariable(name="answer", required=True, options=("yes", "no")),
            GeneratedVariable(name="answerExplanation", required=True),
        ),
    )


def ordered_validators(validators: Sequence[Validator]) -> List[Validator]:
    """Pattern validators first, then AI-judged ones; declaration order kept within each group."""
    return sorted(validators, key=lambda v: 0 if v.is_pattern else 1)


def check_generated(variables: Sequence[GeneratedVariable], scope: Mapping[str, str]):
    """
    Check required, pattern and option constraints of generated variables.

    Raises:
        RequiredVariableMissing, PatternMismatch, OptionMismatch
    """
    for variable in variables:
        value = scope.get(variable.name) or ""
        if not value and variable.required:
            raise RequiredVariableMissing(
                f"The required variable '{variable.name}' is missing: "
                f"{json.dumps(dict(scope), ensure_ascii=False)[:500]}",
                variable=variable.name,
            )

        pattern = variable.compiled_pattern()
        if pattern is not None and not pattern.search(value):
            raise PatternMismatch(
                f"The variable '{variable.name}' does not match the required pattern "
                f"{variable.pattern}: {value}",
                variable=variable.name,
            )

        if variable.options and value not in variable.options:
            raise OptionMismatch(
                f"The variable '{variable.name}' is not one of {list(variable.options)}: {value}",
                variable=variable.name,
            )


class ValidatorSuite:
    """Runs a step's checks against a candidate scope."""

    def __init__(self, interpreter: "StepInterpreter"):
        self.interpreter = interpreter

    def validate(self, step: Step, scope: Mapping[str, str]) -> None:
        """
        Validate a candidate scope for ``step``.

        Raises:
            ValidationFailure: On the first failed check
        """
        check_generated(step.generated_variables, scope)

        for validator in ordered_validators(step.validators):
            self._check(validator, scope)

    def _check(self, validator: Validator, scope: Mapping[str, str]) -> None:
        text = self.interpreter.context.resolver.resolve(validator.text, scope) or ""

        if validator.is_pattern:
            verdict = "yes" if re.search(validator.pattern, text) else "no"
            explanation = "matched" if verdict == "yes" else "not matched"
            debug_info = f"pattern {validator.pattern}"
        else:
            result = self.interpreter.run(judge_step(text), dict(scope))
            verdict = result.get("answer", "") if isinstance(result, Mapping) else ""
            explanation = result.get("answerExplanation", "") if isinstance(result, Mapping) else ""
            debug_info = "generated by AI"

        if verdict != validator.expect:
            raise ValidatorRejected(
                f"Validation failed expected {validator.expect} ({debug_info} {explanation}), "
                f"got {verdict}. Text: {json.dumps(text, ensure_ascii=False)}",
                expected=validator.expect,
                verdict=verdict,
                explanation=explanation,
            )
