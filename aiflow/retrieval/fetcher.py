"""
Download retrieval.

Fetches documents referenced by downloaded variables.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from ..exceptions import RetrievalError

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}


class Fetcher(ABC):
    """Retrieves the text behind a source locator."""

    @abstractmethod
    def fetch(self, locator: str) -> str:
        """
        Fetch a document.

        Raises:
            RetrievalError: On network or decoding failure
        """


class HttpFetcher(Fetcher):
    """Fetches http(s) URLs with requests."""

    def __init__(
        self,
        timeout_sec: float = 60,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None
    ):
        self.timeout_sec = timeout_sec
        self.headers = {**BROWSER_HEADERS, **(headers or {})}
        self.session = session or requests.Session()

    def fetch(self, locator: str) -> str:
        logger.debug(f"Downloading {locator}")
        try:
            response = self.session.get(locator, headers=self.headers, timeout=self.timeout_sec)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RetrievalError(f"Failed to download URL: {locator}. Error: {e}") from e
        return response.text
