"""Aggregation pass processors."""

from .base import BaseProcessor
from .status import StatusProcessor

__all__ = ["BaseProcessor", "StatusProcessor"]
