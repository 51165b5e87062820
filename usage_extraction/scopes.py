"""
Scope analysis.

Tracks the scope-creation calls open at the current point of one
compilation unit's traversal. A scope stays open for as long as the
traversal is inside the region it governs; nesting is decided by syntax
containment, so calls inside lambdas or local functions declared within
that region are still enclosed.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from usage_extraction.candidates import CallCandidate, RegionKey
from usage_extraction.models import MessageParameter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenScope:
    """A scope-creation call whose governed region is still being traversed."""

    region: RegionKey
    record_key: str
    state: Tuple[MessageParameter, ...] = ()


class ScopeAnalysisService:
    """Per-unit stack of open scopes.

    Not thread-safe; one instance belongs to exactly one compilation unit.

    Example:
        >>> scopes = ScopeAnalysisService()
        >>> scopes.enter(candidate)          # close scopes left behind
        >>> chain = scopes.current_chain()   # keys, outermost first
        >>> scopes.push((10, 90), record.key)
    """

    def __init__(self):
        self._stack: List[OpenScope] = []

    def enter(self, candidate: CallCandidate) -> None:
        """Close every open scope whose region does not enclose ``candidate``."""
        enclosing = set(candidate.lexical_path)
        while self._stack and self._stack[-1].region not in enclosing:
            closed = self._stack.pop()
            logger.debug("Closed scope %s", closed.record_key)

    def pop(self) -> Optional[OpenScope]:
        """Pop the innermost scope; a no-op on an empty stack."""
        if not self._stack:
            return None
        return self._stack.pop()

    def push(
        self,
        region: Optional[RegionKey],
        record_key: str,
        state: Tuple[MessageParameter, ...] = (),
    ) -> None:
        if region is None:
            logger.debug("Scope %s governs no region; not tracked", record_key)
            return
        self._stack.append(OpenScope(region=region, record_key=record_key, state=tuple(state)))

    def current_chain(self) -> Tuple[str, ...]:
        """Keys of the open scopes, outermost first."""
        return tuple(scope.record_key for scope in self._stack)

    @property
    def depth(self) -> int:
        return len(self._stack)
