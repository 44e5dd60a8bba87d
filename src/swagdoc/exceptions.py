"""Exception hierarchy for swagdoc.

All exceptions inherit from :class:`SwagdocError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`swagdoc.exit_codes`.
The top-level error handler in :func:`swagdoc.app.main` catches
``SwagdocError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Fatal errors raised during a generation run also carry the ordered list of
warnings recorded before the failure (see :attr:`SwagdocError.warnings`), so
that unknown-directive noise is still reported when the run aborts.

Subclass hierarchy::

    SwagdocError (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- ConfigurationError    (exit 3)
    +-- StructuralError       (exit 4)
    +-- ResolutionError       (exit 5)
    +-- EmitError             (exit 6)
    +-- DirectiveSyntaxError  (never fatal, becomes a warning)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from swagdoc.exit_codes import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_EMIT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RESOLUTION_ERROR,
    EXIT_STRUCTURAL_ERROR,
)

if TYPE_CHECKING:
    from swagdoc.models import Diagnostic, SourceLocation


class SwagdocError(Exception):
    """Base exception for all swagdoc errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`swagdoc.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.warnings: list[Diagnostic] = []


class InvalidUsageError(SwagdocError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class ConfigurationError(SwagdocError):
    """Raised before scanning when the run configuration cannot be honoured.

    Covers invalid config files and values, search directories that do not
    exist, a general-info file that cannot be found, and exclude names that
    match no directory.
    """

    exit_code = EXIT_CONFIGURATION_ERROR


class StructuralError(SwagdocError):
    """Raised when annotations contradict each other or the document is incomplete.

    Args:
        message: Human-readable error description.
        locations: Every source location involved, e.g. both declarations
            of a duplicated route.
    """

    exit_code = EXIT_STRUCTURAL_ERROR

    def __init__(
        self,
        message: str,
        locations: Optional[list[SourceLocation]] = None,
    ):
        self.locations: list[SourceLocation] = list(locations or [])
        if self.locations:
            where = ", ".join(str(loc) for loc in self.locations)
            message = f"{message} ({where})"
        super().__init__(message)


class ResolutionError(SwagdocError):
    """Raised when a referenced type has no declaration in the scanned tree.

    Args:
        type_name: The fully-qualified name that could not be found.
        operation: Label of the operation whose schema required the type,
            e.g. ``GET /users/{id}``.
        field_path: Chain of ``Type.field`` hops leading to the reference.
        location: Source location of the directive that started the chain.
    """

    exit_code = EXIT_RESOLUTION_ERROR

    def __init__(
        self,
        type_name: str,
        operation: str,
        field_path: tuple[str, ...] = (),
        location: Optional[SourceLocation] = None,
    ):
        self.type_name = type_name
        self.operation = operation
        self.field_path = field_path
        self.location = location
        via = " -> ".join(field_path) if field_path else "directive"
        message = f"Type '{type_name}' not found, referenced by {operation} via {via}"
        if location is not None:
            message += f" ({location})"
        super().__init__(message)


class EmitError(SwagdocError):
    """Raised when an output file cannot be written."""

    exit_code = EXIT_EMIT_ERROR


class DirectiveSyntaxError(SwagdocError):
    """Raised by the directive grammars for a malformed argument list.

    Never escapes the interpreter: it is converted into a warning
    diagnostic and the offending directive is dropped.
    """
