"""Inspect commands -- examine the generated document without writing it.

Provides the ``swagdoc inspect`` group. Every sub-command resolves the
configuration, runs the full pipeline, and shows one aspect of the result
as a table or structured data: paths (operations), schemas, security
schemes, general info, or the diagnostics the run produced.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from swagdoc.output import get_output, info

inspect_app = typer.Typer(no_args_is_help=True)

_DIR_OPTION = typer.Option(None, "--dir", "-d", help="Comma-separated directories to scan.")
_GENERAL_INFO_OPTION = typer.Option(None, "--general-info", "-g", help="General API info file.")
_EXCLUDE_OPTION = typer.Option(None, "--exclude-dir", help="Directory name to skip. Repeatable.")
_OAS_OPTION = typer.Option(None, "--oas", help="OpenAPI version: 3.0.0, 3.1.0 or 3.1.1.")
_CONFIG_OPTION = typer.Option(None, "--config", help="Project config file.")


def _run(
    search_dirs: Optional[str],
    general_info: Optional[str],
    exclude_dirs: Optional[list[str]],
    openapi_version: Optional[str],
    config_file: Optional[Path],
):  # noqa: ANN202
    """Run the pipeline and return ``(document, diagnostics)``.

    Raises:
        typer.Exit: With the error's exit code when the run fails.
    """
    from swagdoc.app import handle_error
    from swagdoc.config import resolve_config
    from swagdoc.exceptions import SwagdocError
    from swagdoc.pipeline import generate_document

    overrides = {
        "search_dirs": search_dirs,
        "general_info": general_info,
        "exclude_dirs": exclude_dirs,
        "openapi_version": openapi_version,
    }
    try:
        config = resolve_config(overrides, config_file)
        return generate_document(config)
    except SwagdocError as exc:
        raise typer.Exit(code=handle_error(exc)) from None


@inspect_app.command("paths")
def inspect_paths(
    search_dirs: Optional[str] = _DIR_OPTION,
    general_info: Optional[str] = _GENERAL_INFO_OPTION,
    exclude_dirs: Optional[list[str]] = _EXCLUDE_OPTION,
    openapi_version: Optional[str] = _OAS_OPTION,
    config_file: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List every operation with its handler and source location.

    Example::

        swagdoc inspect paths -d ./ --exclude-dir vendor
    """
    document, _ = _run(search_dirs, general_info, exclude_dirs, openapi_version, config_file)
    headers = ["Method", "Path", "Operation ID", "Summary", "Handler", "Source"]
    rows = [
        [
            op.method.value.upper(),
            op.path,
            op.operation_id or "-",
            op.summary or "-",
            op.handler or "-",
            str(op.location),
        ]
        for op in document.operations
    ]
    get_output().print_table(headers, rows, title=f"{document.info.title} -- Paths ({len(rows)})")


@inspect_app.command("schemas")
def inspect_schemas(
    search_dirs: Optional[str] = _DIR_OPTION,
    general_info: Optional[str] = _GENERAL_INFO_OPTION,
    exclude_dirs: Optional[list[str]] = _EXCLUDE_OPTION,
    openapi_version: Optional[str] = _OAS_OPTION,
    config_file: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List the component schemas with up to five property names each."""
    document, _ = _run(search_dirs, general_info, exclude_dirs, openapi_version, config_file)
    if not document.components:
        info("No schemas referenced by any operation.")
        return

    headers = ["Schema", "Type", "Properties"]
    rows: list[list[str]] = []
    for name, schema in document.components.items():
        if schema.all_of:
            kind = "allOf"
            properties = [key for part in schema.all_of for key in part.properties]
        else:
            kind = schema.type or "any"
            properties = list(schema.properties)
        shown = ", ".join(properties[:5]) + ("..." if len(properties) > 5 else "")
        rows.append([name, kind, shown])
    get_output().print_table(headers, rows, title=f"Schemas ({len(rows)})")


@inspect_app.command("auth")
def inspect_auth(
    search_dirs: Optional[str] = _DIR_OPTION,
    general_info: Optional[str] = _GENERAL_INFO_OPTION,
    exclude_dirs: Optional[list[str]] = _EXCLUDE_OPTION,
    openapi_version: Optional[str] = _OAS_OPTION,
    config_file: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Show the declared security schemes."""
    document, _ = _run(search_dirs, general_info, exclude_dirs, openapi_version, config_file)
    if not document.security_schemes:
        info("No security schemes defined.")
        return

    headers = ["Name", "Kind", "Location", "Scopes", "Description"]
    rows = [
        [
            name,
            scheme.kind.value,
            f"{scheme.location_in}:{scheme.parameter_name}" if scheme.location_in else "-",
            ", ".join(scheme.scopes) or "-",
            (scheme.description or "-")[:60],
        ]
        for name, scheme in document.security_schemes.items()
    ]
    get_output().print_table(headers, rows, title="Security Schemes")


@inspect_app.command("info")
def inspect_info(
    search_dirs: Optional[str] = _DIR_OPTION,
    general_info: Optional[str] = _GENERAL_INFO_OPTION,
    exclude_dirs: Optional[list[str]] = _EXCLUDE_OPTION,
    openapi_version: Optional[str] = _OAS_OPTION,
    config_file: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Show general API info, servers and document totals."""
    document, diagnostics = _run(search_dirs, general_info, exclude_dirs, openapi_version, config_file)
    doc_info = document.info
    data: dict = {
        "title": doc_info.title,
        "version": doc_info.version,
        "openapi": document.openapi.value,
        "description": doc_info.description,
        "servers": [server.url for server in document.servers],
        "paths": len(document.paths),
        "operations": len(document.operations),
        "schemas": len(document.components),
        "security_schemes": list(document.security_schemes),
        "warnings": len(diagnostics),
    }
    if doc_info.contact is not None:
        data["contact"] = doc_info.contact.model_dump(exclude_none=True)
    if doc_info.license is not None:
        data["license"] = doc_info.license.model_dump(exclude_none=True)
    get_output().print_structured({k: v for k, v in data.items() if v is not None})


@inspect_app.command("diagnostics")
def inspect_diagnostics(
    search_dirs: Optional[str] = _DIR_OPTION,
    general_info: Optional[str] = _GENERAL_INFO_OPTION,
    exclude_dirs: Optional[list[str]] = _EXCLUDE_OPTION,
    openapi_version: Optional[str] = _OAS_OPTION,
    config_file: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List every warning the run recorded, in file order."""
    _, diagnostics = _run(search_dirs, general_info, exclude_dirs, openapi_version, config_file)
    if not len(diagnostics):
        info("No diagnostics.")
        return
    headers = ["Category", "Location", "Message"]
    rows = [
        [d.category.value, str(d.location) if d.location else "-", d.message]
        for d in diagnostics
    ]
    get_output().print_table(headers, rows, title=f"Diagnostics ({len(rows)})")
