"""
Ollama chat backend.

Posts a single-message chat to ``<uri>/api/chat`` with the step's JSON schema
as the ``format`` constraint and decodes the model's JSON answer.
"""

import json
import logging
import re
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import requests

from ..exceptions import BackendError
from .types import BackendConfig

logger = logging.getLogger(__name__)

THINK_PATTERN = re.compile(r'<think>.*?</think>', re.DOTALL)


def split_credentials(uri: str) -> Tuple[str, Optional[Tuple[str, str]]]:
    """Strip user:password from a URI, returning (clean uri, auth or None)."""
    parts = urlsplit(uri)
    if not parts.username or not parts.password:
        return uri, None
    netloc = parts.hostname or ''
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc)), (parts.username, parts.password)


class OllamaBackend:
    """Blocking client for one configured Ollama endpoint."""

    def __init__(self, config: BackendConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        base, self.auth = split_credentials(config.uri)
        self.url = base.rstrip('/') + '/api/chat'

    def build_request(self, prompt: str, schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        request = {
            'model': self.config.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'stream': False,
            'options': {'temperature': 0, **self.config.options},
        }
        if schema is not None:
            request['format'] = schema
        return request

    def prompt(self, prompt: str, schema: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send a prompt and return the answer.

        Returns:
            Decoded JSON when a schema was given, the raw text otherwise

        Raises:
            BackendError: On transport failure or an undecodable answer
        """
        started = time.time()
        logger.info(
            f"Ollama request to {urlsplit(self.url).netloc} using model {self.config.model}: "
            f"{prompt[:100]}..."
        )
        try:
            response = self.session.post(
                self.url,
                json=self.build_request(prompt, schema),
                auth=self.auth,
                headers={'Accept': 'application/json', 'User-Agent': 'aiflow/0.1'},
                timeout=self.config.timeout_sec,
            )
            response.raise_for_status()
            raw = response.json()
        except requests.RequestException as e:
            raise BackendError(f"Backend '{self.config.name}' request failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"Backend '{self.config.name}' returned invalid JSON: {e}") from e
        finally:
            logger.info(f"Ollama request took {time.time() - started:.2f}s.")

        answer = (raw.get('message') or {}).get('content') if isinstance(raw, dict) else None
        if not answer:
            raise BackendError(f"Unexpected answer from the model: {json.dumps(raw)[:500]}")

        answer = THINK_PATTERN.sub('', answer).strip()
        if schema is None:
            return answer

        try:
            decoded = json.loads(answer)
        except ValueError as e:
            raise BackendError(f"Failed to decode the model response: {answer[:500]}") from e
        if not isinstance(decoded, dict):
            raise BackendError(f"Model response is not a JSON object: {answer[:500]}")
        return decoded
