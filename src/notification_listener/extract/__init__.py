"""
Field extraction from semi-structured log text.

- PatternExtractor: ordered recognizers, first match wins
- Recognizer: one recognized line shape
- DEFAULT_RECOGNIZERS: delivery, pipeline-completed, titled-text
"""

from notification_listener.extract.patterns import (
    DEFAULT_RECOGNIZERS,
    PatternExtractor,
    Recognizer,
)

__all__ = [
    "DEFAULT_RECOGNIZERS",
    "PatternExtractor",
    "Recognizer",
]
