"""
Message template parsing.

Grammar of a placeholder: ``{`` Name [``,`` Alignment] [``:`` Format] ``}``,
where Name is any non-empty text up to the first ``,`` or ``:`` and may
carry a leading structured-capture marker (``@`` or ``$``).
Doubled braces are literal escapes. Any other brace makes the whole
template "unparsed": the text is kept verbatim as one literal segment and
no placeholder is reported.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple, Union

from usage_extraction.models import TemplatePlaceholder

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(
    r"^(?P<marker>[@$])?"
    r"(?P<name>[^{}:,]+)"
    r"(?:,(?P<alignment>\s*[+-]?\d+\s*))?"
    r"(?::(?P<format>[^{}]*))?$"
)

Segment = Union[str, TemplatePlaceholder]


@dataclass(frozen=True)
class ParsedTemplate:
    """Result of parsing one message template.

    Attributes:
        text: The template exactly as written
        segments: Literal text (escapes resolved) interleaved with placeholders
        parsed: False when the template did not match the grammar
        error: Why parsing failed, for unparsed templates
    """

    text: str
    segments: Tuple[Segment, ...]
    parsed: bool = True
    error: Optional[str] = None

    @property
    def placeholders(self) -> Tuple[TemplatePlaceholder, ...]:
        return tuple(s for s in self.segments if isinstance(s, TemplatePlaceholder))

    @property
    def distinct_placeholders(self) -> Tuple[TemplatePlaceholder, ...]:
        """First occurrence of every placeholder name, in template order."""
        seen = set()
        distinct = []
        for placeholder in self.placeholders:
            if placeholder.name in seen:
                continue
            seen.add(placeholder.name)
            distinct.append(placeholder)
        return tuple(distinct)


def _unparsed(text: str, error: str) -> ParsedTemplate:
    logger.debug("Template %r left unparsed: %s", text, error)
    return ParsedTemplate(
        text=text,
        segments=(text,) if text else (),
        parsed=False,
        error=error,
    )


def _parse_placeholder(body: str, ordinal: int) -> Optional[TemplatePlaceholder]:
    match = _PLACEHOLDER_RE.match(body)
    if match is None:
        return None

    alignment = match.group("alignment")
    format_specifier = match.group("format")
    return TemplatePlaceholder(
        name=match.group("name"),
        ordinal=ordinal,
        alignment=int(alignment.strip()) if alignment is not None else None,
        format_specifier=format_specifier or None,
        capture_marker=match.group("marker"),
    )


@lru_cache(maxsize=2048)
def parse_template(text: str) -> ParsedTemplate:
    """Parse a message template into literal segments and placeholders.

    Ordinals are assigned left to right, repeated names included.

    Args:
        text: Raw template string.

    Returns:
        A ParsedTemplate; ``parsed`` is False if any brace could not be
        matched to the grammar.

    Example:
        >>> [p.name for p in parse_template("User {UserId} in {Tenant,-8:x}").placeholders]
        ['UserId', 'Tenant']
    """
    segments: List[Segment] = []
    literal: List[str] = []
    ordinal = 0
    index = 0
    length = len(text)

    while index < length:
        char = text[index]

        if char == "{":
            if index + 1 < length and text[index + 1] == "{":
                literal.append("{")
                index += 2
                continue

            close = text.find("}", index + 1)
            if close == -1:
                return _unparsed(text, f"unmatched '{{' at offset {index}")

            body = text[index + 1:close]
            if "{" in body:
                return _unparsed(text, f"unmatched '{{' at offset {index}")

            placeholder = _parse_placeholder(body, ordinal)
            if placeholder is None:
                return _unparsed(text, f"malformed placeholder '{{{body}}}' at offset {index}")

            if literal:
                segments.append("".join(literal))
                literal = []
            segments.append(placeholder)
            ordinal += 1
            index = close + 1

        elif char == "}":
            if index + 1 < length and text[index + 1] == "}":
                literal.append("}")
                index += 2
                continue
            return _unparsed(text, f"unmatched '}}' at offset {index}")

        else:
            literal.append(char)
            index += 1

    if literal:
        segments.append("".join(literal))

    return ParsedTemplate(text=text, segments=tuple(segments))
