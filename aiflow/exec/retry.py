"""
Retry policy for the generate/validate loop.
"""

import time
from dataclasses import dataclass


@dataclass
class RetryPolicy:
    """
    Configuration for step retry behavior.

    Attributes:
        max_attempts: Total generation attempts per step (1 initial + retries)
        delay_ms: Delay between attempts in milliseconds
    """
    max_attempts: int = 6
    delay_ms: int = 0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def should_retry(self, attempt: int) -> bool:
        """
        Determine if another attempt is allowed.

        Args:
            attempt: Number of attempts made so far

        Returns:
            True if should retry, False otherwise
        """
        return attempt < self.max_attempts

    def wait(self):
        """Wait for the configured delay between attempts."""
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)
