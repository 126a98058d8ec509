"""
Backend registry.

Stores backend configurations by selector name and dispatches generation
calls to the matching Ollama endpoint. Named configurations are merged over
the ``default`` one, and unknown selectors fall back to ``default``.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from .ollama import OllamaBackend
from .types import BackendConfig, GenerationBackend, DEFAULT_TIMEOUT_SEC


logger = logging.getLogger(__name__)

DEFAULT_URI = "http://localhost:11434"
DEFAULT_MODEL = "llama3.1"


class BackendRegistry(GenerationBackend):
    """
    Registry of backend configurations.

    Environment:
        AIFLOW_BACKEND_URI: Overrides the built-in default URI
        AIFLOW_MODEL: Overrides the built-in default model
    """

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """Initialize registry with the built-in default backend."""
        env = os.environ if environ is None else environ
        self._configs: Dict[str, BackendConfig] = {
            "default": BackendConfig(
                name="default",
                uri=env.get("AIFLOW_BACKEND_URI", DEFAULT_URI),
                model=env.get("AIFLOW_MODEL", DEFAULT_MODEL),
            )
        }
        self._clients: Dict[str, OllamaBackend] = {}

    def register(self, config: BackendConfig) -> None:
        """
        Register a backend configuration.

        Raises:
            ValueError: If the configuration is invalid
        """
        errors = config.validate()
        if errors:
            raise ValueError(f"Invalid backend configuration: {'; '.join(errors)}")

        self._configs[config.name] = config
        self._clients.pop(config.name, None)
        logger.debug(f"Registered backend: {config.name}")

    def register_from_workflow(self, backends_config: Dict[str, Dict[str, Any]]) -> List[str]:
        """
        Register backends from workflow configuration.

        Each entry is merged over the current ``default`` configuration.

        Returns:
            List of validation errors (empty if all valid)
        """
        errors = []
        default = self._configs["default"]

        for name, config in backends_config.items():
            try:
                backend = BackendConfig(
                    name=name,
                    uri=config.get("uri", default.uri),
                    model=config.get("model", default.model),
                    timeout_sec=config.get("timeout_sec", default.timeout_sec or DEFAULT_TIMEOUT_SEC),
                    options={**default.options, **config.get("options", {})},
                )

                validation_errors = backend.validate()
                if validation_errors:
                    errors.extend(validation_errors)
                else:
                    self.register(backend)

            except Exception as e:
                errors.append(f"Error registering backend '{name}': {e}")

        return errors

    def get(self, name: str) -> BackendConfig:
        """Get a configuration by selector, falling back to ``default``."""
        return self._configs.get(name) or self._configs["default"]

    def exists(self, name: str) -> bool:
        return name in self._configs

    def list_backends(self) -> List[str]:
        return list(self._configs.keys())

    def client(self, name: str) -> OllamaBackend:
        config = self.get(name)
        if config.name not in self._clients:
            self._clients[config.name] = OllamaBackend(config)
        return self._clients[config.name]

    def generate(self, selector: str, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        return self.client(selector).prompt(prompt, schema)
