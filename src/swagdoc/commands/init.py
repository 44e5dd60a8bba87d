"""Init command -- generate the OpenAPI document from Go sources.

Implements ``swagdoc init`` (also registered as ``swagdoc generate``):
resolve the configuration, run the pipeline, print the collected
warnings, and write the selected output files. Nothing is written when
the run fails.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from swagdoc.output import debug, info, print_diagnostics, success, suggest


def init_command(
    general_info: Optional[str] = typer.Option(
        None, "--general-info", "-g", help="File holding the general API info (default: main.go)."
    ),
    search_dirs: Optional[str] = typer.Option(
        None, "--dir", "-d", help="Comma-separated directories to scan (default: ./)."
    ),
    exclude_dirs: Optional[list[str]] = typer.Option(
        None, "--exclude-dir", help="Directory name to skip at any depth. Repeatable or comma separated."
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output directory (default: ./docs)."
    ),
    output_types: Optional[str] = typer.Option(
        None, "--output-types", "--ot", help="Comma-separated kinds: go, json, yaml, ui."
    ),
    openapi_version: Optional[str] = typer.Option(
        None, "--oas", help="OpenAPI version: 3.0.0, 3.1.0 or 3.1.1."
    ),
    max_file_size: Optional[float] = typer.Option(
        None, "--max-file-size", help="Split output above this size in MB (default: 5)."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", help="Parallel file workers (default: CPU count, at most 8)."
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Project config file (default: ./swagdoc.json)."
    ),
) -> None:
    """Generate openapi.json / openapi.yaml from annotated Go sources.

    Example::

        swagdoc init
        swagdoc init -g cmd/api/main.go -d ./ --exclude-dir vendor -o docs
        swagdoc generate --oas 3.0.0 --ot json
    """
    from swagdoc.app import handle_error
    from swagdoc.config import resolve_config
    from swagdoc.document.render import render_document
    from swagdoc.emit.writer import write_outputs
    from swagdoc.exceptions import SwagdocError
    from swagdoc.pipeline import generate_document

    overrides = {
        "general_info": general_info,
        "search_dirs": search_dirs,
        "exclude_dirs": exclude_dirs,
        "output_dir": output_dir,
        "output_types": output_types,
        "openapi_version": openapi_version,
        "max_file_size_mb": max_file_size,
        "workers": workers,
    }
    try:
        config = resolve_config(overrides, config_file)
        debug(f"Effective configuration: {config.model_dump_json()}")
        info(f"Scanning {', '.join(config.search_dirs)} (entry: {config.general_info})")
        document, diagnostics = generate_document(config)
        rendered = render_document(document)
        result = write_outputs(
            rendered,
            Path(config.output_dir),
            config.output_types,
            config.max_file_size_mb,
            diagnostics,
        )
    except SwagdocError as exc:
        raise typer.Exit(code=handle_error(exc)) from None

    print_diagnostics(diagnostics)
    for path in result.files:
        info(f"Wrote {path}")
    success(
        f"Generated OpenAPI {document.openapi.value}: "
        f"{len(document.operations)} operations, {len(document.components)} schemas."
    )
    if result.split:
        suggest(f"Output exceeded {config.max_file_size_mb} MB; load it through the split manifest.")
