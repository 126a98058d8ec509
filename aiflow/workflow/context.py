"""
Per-run execution context.

Carries everything one workflow run shares: the backend, the fetcher, the
download cache and a run-tagged logger. A fresh context is created for every
run so nothing leaks between runs.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict

from ..exceptions import RetrievalError
from ..exec.retry import RetryPolicy
from ..providers.types import GenerationBackend
from ..retrieval.fetcher import Fetcher, HttpFetcher
from ..variables.substitution import TemplateResolver

logger = logging.getLogger(__name__)

# Placeholder used when a download fails
DOWNLOAD_FAILED = "**unknown**"


class RunLogger(logging.LoggerAdapter):
    """Prefixes every message with the run id."""

    def process(self, msg, kwargs):
        return f"[{self.extra['run_id']}] {msg}", kwargs


@dataclass
class ExecutionContext:
    """
    State shared by all steps of one workflow run.

    Attributes:
        backend: Generation capability
        fetcher: Retrieval capability for downloaded variables
        backend_selector: Selector passed to every generation call
        resolver: Template resolver
        retry_policy: Attempt budget of the generate/validate loop
        run_id: Identifier used to tag log records
        download_cache: Fetched documents keyed by resolved locator
    """
    backend: GenerationBackend
    fetcher: Fetcher = field(default_factory=HttpFetcher)
    backend_selector: str = "workflow"
    resolver: TemplateResolver = field(default_factory=TemplateResolver)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    download_cache: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.log = RunLogger(logger, {'run_id': self.run_id})

    def download(self, locator: str) -> str:
        """Fetch ``locator`` once per run; failures are cached as DOWNLOAD_FAILED."""
        if locator in self.download_cache:
            return self.download_cache[locator]

        try:
            text = self.fetcher.fetch(locator)
        except RetrievalError as e:
            self.log.error(f"Failed to download URL: {locator}. Will use keyword '{DOWNLOAD_FAILED}'. Error: {e}")
            text = DOWNLOAD_FAILED

        self.download_cache[locator] = text
        return text
