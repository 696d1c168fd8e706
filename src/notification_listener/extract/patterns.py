"""
Pattern extraction from notification daemon log lines.

Turns one line of semi-structured log text into zero or one
RawObservation. Each Recognizer describes one shape an interesting
line can take; recognizers are tried in a fixed priority order and the
first whose trigger matches wins. Fields are never merged across
recognizers for a single line.

Field values are either a quoted literal or a redaction marker
(``{length = 4}`` or ``<private>``). Literals are unescaped; redaction
markers surface as empty string.

Example:
    >>> from notification_listener.extract import PatternExtractor
    >>>
    >>> extractor = PatternExtractor()
    >>> obs = extractor.extract(
    ...     'Delivering <NotificationRecord app:"com.example.chat" '
    ...     'ident:"id123" title:"Ann" body:"hi">'
    ... )
    >>> obs.app_identifier, obs.title
    ('com.example.chat', 'Ann')
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from notification_listener.models.observations import RawObservation, SourceKind
from notification_listener.utils.time import parse_log_timestamp

logger = structlog.get_logger(__name__)

# A quoted literal (with backslash escapes) or a redaction marker.
# The literal lands in the named group; a marker leaves it unset.
_VALUE = r'(?:"(?P<{name}>(?:[^"\\]|\\.)*)"|\{{length\s*=\s*\d+\}}|<private>)'

# Bare tokens for identifiers that are not always quoted
_TOKEN = r'"?(?P<{name}>[A-Za-z0-9_][A-Za-z0-9_.\-]*)"?'

_ESCAPE = re.compile(r"\\(.)")

_QUOTED = re.compile(r'"(?:[^"\\]|\\.)*"')

# Fields a recognizer may capture
FIELDS = ("app", "ident", "title", "body")


def value_pattern(name: str) -> str:
    """Regex fragment capturing a quoted literal or redaction marker into ``name``."""
    return _VALUE.format(name=name)


def token_pattern(name: str) -> str:
    """Regex fragment capturing an optionally quoted identifier token into ``name``."""
    return _TOKEN.format(name=name)


def unescape(value: str) -> str:
    """Undo backslash escaping inside a quoted literal."""
    return _ESCAPE.sub(r"\1", value)


def search_outside_quotes(pattern: re.Pattern[str], text: str) -> re.Match[str] | None:
    """First match of ``pattern`` that does not start inside a quoted literal.

    Keys such as ``title:`` can appear in the text of another field;
    those occurrences are not fields of the record.
    """
    spans = [m.span() for m in _QUOTED.finditer(text)]
    for hit in pattern.finditer(text):
        position = hit.start()
        if not any(start <= position < end for start, end in spans):
            return hit
    return None


@dataclass(frozen=True)
class Recognizer:
    """One recognized line shape.

    The trigger decides whether the recognizer applies. Its named groups
    are captured directly; any field not captured by the trigger is then
    searched for with the matching pattern in ``fields``, within the
    trigger's match when ``scoped`` is set, else across the whole line.

    Attributes:
        name: Shape name, also used as the observation category
        trigger: Pattern that must match for this shape to apply
        fields: Per-field search patterns, each with one group of that name
        scoped: Search fields only inside the trigger match
    """

    name: str
    trigger: re.Pattern[str]
    fields: dict[str, re.Pattern[str]] = field(default_factory=dict)
    scoped: bool = False

    def match(self, line: str) -> dict[str, str] | None:
        """Apply this recognizer to a line.

        Returns:
            Captured fields (missing or redacted fields as empty string),
            or None if the trigger does not match
        """
        found = self.trigger.search(line)
        if found is None:
            return None

        captured = {name: "" for name in FIELDS}
        trigger_groups = found.groupdict()
        haystack = found.group(0) if self.scoped else line

        for name in FIELDS:
            if name in trigger_groups:
                captured[name] = trigger_groups[name] or ""
                continue
            pattern = self.fields.get(name)
            if pattern is None:
                continue
            hit = search_outside_quotes(pattern, haystack)
            if hit is not None:
                captured[name] = hit.group(name) or ""

        return {name: unescape(value) for name, value in captured.items()}


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


DELIVERY = Recognizer(
    name="delivery",
    trigger=_compile(
        r"\b(?:Delivering|Presenting|Delivered|Presented)\s+<NotificationRecord\s+"
        r'app:"(?P<app>[^"]+)"\s+ident:' + value_pattern("ident")
        # rest of the record; quoted literals and <private> may contain '>'
        + r'(?:"(?:[^"\\]|\\.)*"|<private>|[^>"])*>'
    ),
    fields={
        "title": _compile(r"\btitle:" + value_pattern("title")),
        "body": _compile(r"\bbody:" + value_pattern("body")),
    },
    scoped=True,
)

PIPELINE_COMPLETED = Recognizer(
    name="pipeline_completed",
    trigger=_compile(r"\bpipeline\s+(?:completed|finished)\b"),
    fields={
        "app": _compile(r"\bbundle(?:Identifier|ID)?\s*[:=]\s*" + token_pattern("app")),
        "ident": _compile(r"\b(?:ident|identifier|request)\s*[:=]\s*" + token_pattern("ident")),
    },
)

TITLED_TEXT = Recognizer(
    name="titled_text",
    trigger=_compile(
        r"\btitle\s*[:=]\s*" + value_pattern("title") + r".*?\bbody\s*[:=]\s*" + value_pattern("body")
    ),
    fields={
        "app": _compile(
            r"\b(?:sectionIdentifier|bundleIdentifier|bundle|app)\s*[:=]\s*" + token_pattern("app")
        ),
        "ident": _compile(r"\b(?:ident|identifier)\s*[:=]\s*" + token_pattern("ident")),
    },
)

DEFAULT_RECOGNIZERS: tuple[Recognizer, ...] = (DELIVERY, PIPELINE_COMPLETED, TITLED_TEXT)


class PatternExtractor:
    """Extract observations from log lines with an ordered recognizer table.

    Args:
        recognizers: Recognizers in priority order (defaults to
            delivery, pipeline-completed, titled-text)
        source_kind: Source kind stamped on produced observations

    Example:
        >>> extractor = PatternExtractor()
        >>> extractor.extract("unrelated chatter") is None
        True
    """

    def __init__(
        self,
        recognizers: Sequence[Recognizer] | None = None,
        *,
        source_kind: SourceKind = SourceKind.TAIL,
    ):
        self.recognizers = tuple(recognizers) if recognizers is not None else DEFAULT_RECOGNIZERS
        self.source_kind = source_kind

    def extract(self, line: str) -> RawObservation | None:
        """Extract at most one observation from a line.

        The first recognizer whose trigger matches decides the outcome:
        a match without an app identifier yields None rather than
        falling through to later recognizers.

        Args:
            line: One complete log line (trailing newline allowed)

        Returns:
            RawObservation, or None if the line is not of interest
        """
        line = line.rstrip("\r\n")

        for recognizer in self.recognizers:
            captured = recognizer.match(line)
            if captured is None:
                continue

            app = captured["app"].strip()
            if not app:
                logger.debug("line_without_identity", recognizer=recognizer.name)
                return None

            return RawObservation(
                source_kind=self.source_kind,
                observed_at=parse_log_timestamp(line),
                app_identifier=app,
                notification_id=captured["ident"],
                title=captured["title"],
                body=captured["body"],
                category=recognizer.name,
            )

        return None

    __call__ = extract
