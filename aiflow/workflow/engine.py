"""
Workflow engine.

Entry point for running a loaded workflow document against a generation
backend.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..exec.retry import RetryPolicy
from ..model import WorkflowDocument
from ..providers.registry import BackendRegistry
from ..providers.types import GenerationBackend
from ..retrieval.fetcher import Fetcher, HttpFetcher
from ..variables.substitution import TemplateResolver
from . import scope as scopes
from .context import ExecutionContext
from .interpreter import StepInterpreter, StepResult


class WorkflowEngine:
    """
    Runs a workflow document.

    Every call to run() gets its own ExecutionContext, so download caches
    and captured state never cross runs.
    """

    def __init__(
        self,
        document: WorkflowDocument,
        backend: GenerationBackend,
        fetcher: Optional[Fetcher] = None,
        retry_policy: Optional[RetryPolicy] = None,
        resolver: Optional[TemplateResolver] = None,
        backend_selector: Optional[str] = None
    ):
        """
        Initialize workflow engine.

        Args:
            document: Loaded workflow
            backend: Generation capability
            fetcher: Retrieval capability (default: HttpFetcher)
            retry_policy: Attempt budget per step (default: 6 attempts)
            resolver: Template resolver (default: TemplateResolver())
            backend_selector: Overrides the document's backend selector
        """
        self.document = document
        self.backend = backend
        self.fetcher = fetcher
        self.retry_policy = retry_policy or RetryPolicy()
        self.resolver = resolver
        self.backend_selector = backend_selector or document.backend

    @classmethod
    def from_path(
        cls,
        workflow_path: Path,
        backend: Optional[GenerationBackend] = None,
        **kwargs
    ) -> 'WorkflowEngine':
        """
        Load a workflow file and build an engine for it.

        Without an explicit backend, a BackendRegistry is created and the
        workflow's ``backends`` section is registered into it.

        Raises:
            WorkflowValidationError: If the workflow is invalid
            ValueError: If the workflow's backend configuration is invalid
        """
        from ..loader import WorkflowLoader

        document = WorkflowLoader().load(Path(workflow_path))
        if backend is None:
            registry = BackendRegistry()
            errors = registry.register_from_workflow(document.backends)
            if errors:
                raise ValueError(f"Backend registration errors: {'; '.join(errors)}")
            backend = registry
        return cls(document, backend, **kwargs)

    def new_context(self) -> ExecutionContext:
        return ExecutionContext(
            backend=self.backend,
            fetcher=self.fetcher or HttpFetcher(),
            backend_selector=self.backend_selector,
            resolver=self.resolver or TemplateResolver(),
            retry_policy=self.retry_policy,
        )

    def run(self, context: Optional[Mapping[str, Any]] = None) -> StepResult:
        """
        Execute the workflow.

        Args:
            context: Initial variables, written over the document's context

        Returns:
            The root step's return projection, or its final scope

        Raises:
            WorkflowError: Any fatal error of the run
        """
        execution = self.new_context()
        initial: Dict[str, str] = scopes.merge(self.document.context, context)

        execution.log.info(
            f"Running workflow '{self.document.name or '<unnamed>'}' with backend '{self.backend_selector}'"
        )
        result = StepInterpreter(execution).run(self.document.root, initial)
        execution.log.info(f"Workflow finished ({len(execution.download_cache)} downloads cached)")
        return result
