"""
Generation backends.

Provides the backend interface, configuration types, the registry and the
Ollama client.
"""

from .types import GenerationBackend, BackendConfig
from .registry import BackendRegistry
from .ollama import OllamaBackend


__all__ = [
    "GenerationBackend",
    "BackendConfig",
    "BackendRegistry",
    "OllamaBackend",
]
