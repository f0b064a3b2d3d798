"""
Abstract base class for status processors.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class BaseProcessor(ABC):
    """Abstract processor interface for one aggregation pass."""

    @abstractmethod
    def process(self, now: datetime | None = None) -> dict:
        """
        Run one pass.

        Args:
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            Processing statistics dict
        """
        pass
