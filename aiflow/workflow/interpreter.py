"""
Step interpreter.

Runs one step of the workflow tree:

    locals -> downloads -> generate/validate loop (only with a prompt)
           -> children -> return projection

Scopes are never mutated; each phase returns a new dict. Each child runs on
the working scope and its result replaces it for the next sibling.
"""

import json
from typing import Any, Dict, Mapping, Union

from ..exceptions import BackendError, RetryBudgetExhausted, ScopeError, ValidationFailure
from ..model import Postprocess, Step
from ..retrieval.postprocess import postprocess
from . import scope as scopes
from .context import DOWNLOAD_FAILED, ExecutionContext
from .projection import project
from .schema import build_schema
from .validation import ValidatorSuite

StepResult = Union[str, Dict[Any, Any]]


class StepInterpreter:
    """Interprets steps against an execution context."""

    def __init__(self, context: ExecutionContext):
        self.context = context
        self.validators = ValidatorSuite(self)

    def run(self, step: Step, scope: Mapping[str, str]) -> StepResult:
        """
        Run ``step`` with ``scope`` as its input.

        Returns:
            The step's return projection, or its full final scope when it
            declares none

        Raises:
            RetryBudgetExhausted: If the step (or any descendant) never validates
            BackendError: If the backend fails
        """
        working = self._merge_locals(step, scope)
        working = self._resolve_downloads(step, working)

        if step.prompt:
            working = self._generate(step, working)

        value: StepResult = working
        for child in step.children:
            value = self.run(child, self._as_scope(value, step, child.label))

        if step.returns is None:
            return value

        return project(step.returns, self._as_scope(value, step, "return"), self.context.resolver)

    @staticmethod
    def _as_scope(value: StepResult, step: Step, consumer: str) -> Dict[str, str]:
        if isinstance(value, str):
            raise ScopeError(
                f"Step '{step.label}': '{consumer}' needs a scope but the previous child "
                f"returned a plain string"
            )
        return scopes.from_result(value)

    def _merge_locals(self, step: Step, scope: Mapping[str, str]) -> Dict[str, str]:
        declared = {variable.name: variable.value for variable in step.local_variables}
        merged = scopes.merge(scope, declared)
        return self.context.resolver.resolve_values(merged, merged)

    def _resolve_downloads(self, step: Step, working: Dict[str, str]) -> Dict[str, str]:
        for variable in step.downloaded_variables:
            locator = self.context.resolver.resolve(variable.source, working) or ""
            text = self.context.download(locator)
            mode = Postprocess.NONE if text == DOWNLOAD_FAILED else variable.postprocess
            working = scopes.merge(working, {variable.name: postprocess(text, mode, variable.limit)})
        return working

    def _generate(self, step: Step, working: Dict[str, str]) -> Dict[str, str]:
        log = self.context.log
        policy = self.context.retry_policy
        resolver = self.context.resolver

        schema = build_schema(step.generated_variables)
        names = json.dumps(list(schema['properties'].keys()))
        candidate = working
        last_failure = None
        attempt = 0

        while policy.should_retry(attempt):
            if attempt:
                policy.wait()
            attempt += 1

            log.info(f"Step '{step.label}': prompting AI to generate {names} (attempt {attempt}/{policy.max_attempts})")
            prompt = resolver.resolve(step.prompt, candidate) or ""
            response = self.context.backend.generate(self.context.backend_selector, prompt, schema)
            if not isinstance(response, Mapping):
                raise BackendError(
                    f"Backend returned {type(response).__name__} instead of a mapping for step '{step.label}'"
                )
            log.debug(f"Step '{step.label}' response: {json.dumps(response, ensure_ascii=False)}")

            candidate = scopes.merge(candidate, response)
            try:
                self.validators.validate(step, candidate)
                return candidate
            except ValidationFailure as failure:
                last_failure = failure
                log.warning(f"Step '{step.label}': {failure}")
                if policy.should_retry(attempt):
                    log.warning(
                        f"Validation failed, retrying... (attempts left: {policy.max_attempts - attempt}). "
                        f"Response: {json.dumps(response, ensure_ascii=False)} "
                        f"Prompt: {json.dumps(prompt[:500], ensure_ascii=False)}"
                    )

        log.error(f"Step '{step.label}': giving up after {attempt} attempts")
        raise RetryBudgetExhausted(step.label, attempt, last_failure)
