"""swagdoc -- Generate OpenAPI 3.0/3.1 documents from annotated Go sources.

API authors annotate Go handlers and models with swag-style ``// @``
comments; swagdoc scans the source tree, resolves every referenced type
across files and packages, and writes one internally consistent
OpenAPI document.

Typical workflow::

    swagdoc init -g cmd/api/main.go --exclude-dir vendor
    swagdoc inspect paths

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    pipeline: Run orchestration from discovery to the assembled document.
    config: Configuration layering (flags, env, swagdoc.json, defaults).
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
