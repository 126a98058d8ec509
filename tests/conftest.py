"""Shared test doubles for the generation and retrieval capabilities."""

from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from aiflow.exceptions import RetrievalError
from aiflow.providers.types import GenerationBackend
from aiflow.retrieval.fetcher import Fetcher


Response = Union[Dict[str, Any], Callable[[str, str, Dict[str, Any]], Dict[str, Any]]]


class ScriptedBackend(GenerationBackend):
    """Returns queued responses in order; the last one repeats when the queue runs dry."""

    def __init__(self, responses: Optional[List[Response]] = None, judge: Optional[Response] = None):
        self.responses = list(responses or [])
        self.judge = judge
        self.calls: List[Dict[str, Any]] = []

    def generate(self, selector, prompt, schema):
        self.calls.append({'selector': selector, 'prompt': prompt, 'schema': schema})

        if self.judge is not None and 'answer' in schema['properties']:
            response = self.judge
        elif len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]

        if callable(response):
            return response(selector, prompt, schema)
        return dict(response)

    @property
    def prompts(self) -> List[str]:
        return [call['prompt'] for call in self.calls]


class StubFetcher(Fetcher):
    """Serves documents from a dict; unknown locators fail."""

    def __init__(self, documents: Optional[Dict[str, str]] = None):
        self.documents = documents or {}
        self.calls: List[str] = []

    def fetch(self, locator):
        self.calls.append(locator)
        if locator not in self.documents:
            raise RetrievalError(f"404 for {locator}")
        return self.documents[locator]


@pytest.fixture
def fetcher():
    return StubFetcher()
