"""
Parameter extraction service.

Maps one argument snapshot to the type and default extraction kind its
message parameter starts out with. The service never raises for an
unresolved type; it reports it so the caller can record an
``UnresolvedType`` failure and keep the record.
"""

from dataclasses import dataclass
from typing import Optional

from usage_extraction.candidates import ArgumentInfo
from usage_extraction.config import UNKNOWN_TYPE
from usage_extraction.models import ParameterKind

# Types that carry no static information
_OPAQUE_TYPES = {"dynamic", "?", "var"}


@dataclass(frozen=True)
class ParameterExtraction:
    """Type and default kind of one argument."""

    type: str
    kind: ParameterKind
    resolved: bool = True


class ParameterExtractionService:
    """Resolve the declared type and default kind of call arguments."""

    def extract(self, argument: ArgumentInfo) -> ParameterExtraction:
        """Extract type and default kind of ``argument``.

        The default kind is Positional; an argument carrying the
        structured-capture marker is Destructured and a labeled
        ``name: value`` argument is Named.
        """
        if argument.capture_marker:
            kind = ParameterKind.DESTRUCTURED
        elif argument.label:
            kind = ParameterKind.NAMED
        else:
            kind = ParameterKind.POSITIONAL

        declared_type = resolve_type_name(argument.declared_type)
        if declared_type is None:
            return ParameterExtraction(type=UNKNOWN_TYPE, kind=kind, resolved=False)
        return ParameterExtraction(type=declared_type, kind=kind)


def resolve_type_name(type_name: Optional[str]) -> Optional[str]:
    """Return ``type_name`` or None when it carries no static type."""
    if not type_name:
        return None
    type_name = type_name.strip()
    if not type_name or type_name in _OPAQUE_TYPES or type_name == UNKNOWN_TYPE:
        return None
    return type_name
