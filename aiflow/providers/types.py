"""
Backend type definitions.

Defines the generation capability consumed by the step interpreter and the
configuration model for concrete backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Large models may take hours to answer a single prompt
DEFAULT_TIMEOUT_SEC = 8 * 3600


class GenerationBackend(ABC):
    """Turns a prompt plus a JSON schema into a name -> string map."""

    @abstractmethod
    def generate(self, selector: str, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Generate structured values.

        Args:
            selector: Backend selector (configuration name)
            prompt: Fully resolved prompt text
            schema: JSON schema the result should satisfy

        Returns:
            Generated values keyed by property name

        Raises:
            BackendError: If no well-formed structured result was produced
        """


@dataclass
class BackendConfig:
    """
    Backend configuration.

    Attributes:
        name: Selector name (e.g., 'default', 'workflow')
        uri: Base URI of the backend, may carry user:password
        model: Model identifier
        timeout_sec: Request timeout
        options: Extra model options sent with each request
    """
    name: str
    uri: str
    model: str
    timeout_sec: Optional[float] = DEFAULT_TIMEOUT_SEC
    options: Dict[str, Any] = field(default_factory=dict)

    def validate(self):
        """Return a list of configuration problems (empty if valid)."""
        errors = []
        if not self.uri:
            errors.append(f"Backend '{self.name}': uri cannot be empty")
        if not self.model:
            errors.append(f"Backend '{self.name}': model cannot be empty")
        if self.timeout_sec is not None and self.timeout_sec <= 0:
            errors.append(f"Backend '{self.name}': timeout_sec must be positive")
        return errors
