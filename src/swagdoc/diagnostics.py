"""Append-only, order-preserving diagnostics collector.

Every pipeline stage records warnings here instead of printing them. Each
per-file worker owns its own :class:`Diagnostics`; after the scanning
barrier the collectors are merged in file order with :meth:`extend`, so the
final list does not depend on worker scheduling.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from swagdoc.models import Diagnostic, DiagnosticCategory, Severity, SourceLocation

logger = logging.getLogger(__name__)


class Diagnostics:
    """Ordered list of :class:`~swagdoc.models.Diagnostic` records."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def warn(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        category: DiagnosticCategory = DiagnosticCategory.SYNTAX,
    ) -> Diagnostic:
        """Record a warning and return it."""
        diagnostic = Diagnostic(
            severity=Severity.WARNING,
            category=category,
            message=message,
            location=location,
        )
        self._items.append(diagnostic)
        logger.debug("warning: %s", diagnostic)
        return diagnostic

    def extend(self, other: Diagnostics) -> None:
        self._items.extend(other._items)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)
