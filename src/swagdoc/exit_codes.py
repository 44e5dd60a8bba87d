"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one failure category and is referenced by the
corresponding :class:`~swagdoc.exceptions.SwagdocError` subclass. CI
scripts can branch on the exit code to tell a bad annotation apart from a
bad invocation without parsing stderr.

Example::

    $ swagdoc init -g cmd/api/main.go
    $ echo $?
    4   # EXIT_STRUCTURAL_ERROR -- two handlers declare the same route
"""

EXIT_SUCCESS = 0
"""The document was generated successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONFIGURATION_ERROR = 3
"""The configuration is invalid (missing entry file, unknown exclude name)."""

EXIT_STRUCTURAL_ERROR = 4
"""The annotations are structurally inconsistent (duplicate operation, missing title)."""

EXIT_RESOLUTION_ERROR = 5
"""A type referenced by an annotation has no matching declaration."""

EXIT_EMIT_ERROR = 6
"""The generated document could not be written to the output directory."""
