"""Classifier interface.

A classifier maps normalized tracking text to a status/color verdict. The
sync core only ever talks to this interface; model lifecycle (loading,
memory, endpoints) stays inside the implementation.
"""

from abc import ABC, abstractmethod

from core.models.canonical import TrackingAnalysisResult


class Classifier(ABC):
    """Abstract tracking-text classifier."""

    @abstractmethod
    async def classify(self, text: str) -> TrackingAnalysisResult:
        """Classify normalized tracking text.

        Implementations may raise on transport errors; callers wrap the call
        with ``classify_with_fallback``.
        """
        pass
