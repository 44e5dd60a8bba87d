"""Document Assembler: merge fragments into one immutable Document.

Inputs are never modified. Operations are ordered by (file, line), grouped
by route in order of first appearance and by canonical method order
within a route. Everything that makes the description contradictory is
fatal:

* missing ``@title`` or ``@version``;
* two operations for the same method and route;
* a ``{placeholder}`` without a path ``@Param``, or the reverse;
* a ``$ref`` with no component (checked last, by :func:`validate_references`).

Version differences that are decided here rather than at rendering time:
3.0.0 keeps only the first response declared for a status code and drops
``info.summary`` and ``license.identifier``, each with a warning.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from swagdoc.diagnostics import Diagnostics
from swagdoc.exceptions import ResolutionError, StructuralError
from swagdoc.models import (
    DiagnosticCategory,
    Document,
    GeneralFragment,
    GeneralInfo,
    HTTPMethod,
    OpenAPIVersion,
    OperationFragment,
    ParameterLocation,
    ResponseDef,
    SchemaNode,
    ServerEntry,
    SourceLocation,
)
from swagdoc.schema.resolver import collect_refs

logger = logging.getLogger(__name__)

_METHOD_ORDER = {method: index for index, method in enumerate(HTTPMethod)}


def assemble(
    general: GeneralFragment,
    operations: Sequence[OperationFragment],
    components: dict[str, SchemaNode],
    version: OpenAPIVersion,
    diagnostics: Diagnostics,
    entry_file: Optional[str] = None,
) -> Document:
    """Build the :class:`Document`.

    Args:
        general: Output of the general-info accumulator.
        operations: Every operation fragment, in any order.
        components: Resolved schemas by name.
        version: Target OpenAPI version.
        diagnostics: Receives non-fatal findings.
        entry_file: General-info file, named in the missing-info error.

    Raises:
        StructuralError: For missing info, duplicate routes or path
            parameter mismatches.
        ResolutionError: For a dangling schema reference.
    """
    info = _checked_info(general.info, version, diagnostics, entry_file)
    servers = list(general.servers) or fallback_servers(info)

    ordered = sorted(operations, key=lambda op: (op.location.file, op.location.line))
    paths: dict[str, dict[HTTPMethod, OperationFragment]] = {}
    for op in ordered:
        _check_path_params(op)
        existing = paths.get(op.path, {}).get(op.method)
        if existing is not None:
            raise StructuralError(
                f"Duplicate operation {op.label} declared by '{existing.handler}' and '{op.handler}'",
                [existing.location, op.location],
            )
        paths.setdefault(op.path, {})[op.method] = _finalize_operation(op, info, version, diagnostics)

    for route, methods in paths.items():
        paths[route] = dict(sorted(methods.items(), key=lambda item: _METHOD_ORDER[item[0]]))

    _check_security(info, paths, general, diagnostics)
    _check_operation_ids(paths, diagnostics)

    document = Document(
        openapi=version,
        info=info,
        servers=servers,
        security_schemes=dict(general.security_schemes),
        paths=paths,
        components={name: components[name] for name in sorted(components)},
    )
    validate_references(document)
    logger.debug(
        "assembled %d paths, %d operations, %d schemas",
        len(document.paths),
        len(document.operations),
        len(document.components),
    )
    return document


# --- General info ---


def _checked_info(
    info: GeneralInfo,
    version: OpenAPIVersion,
    diagnostics: Diagnostics,
    entry_file: Optional[str],
) -> GeneralInfo:
    missing = [name for name in ("title", "version") if not getattr(info, name)]
    if missing:
        where = f" in {entry_file}" if entry_file else ""
        raise StructuralError(
            f"General API info is missing required {' and '.join('@' + m for m in missing)}{where}"
        )
    info = info.model_copy(deep=True)
    if version.is_31:
        return info
    if info.summary:
        diagnostics.warn("@summary requires OpenAPI 3.1 and was dropped", category=DiagnosticCategory.STRUCTURAL)
        info.summary = None
    if info.license is not None and info.license.identifier:
        diagnostics.warn(
            "@license.identifier requires OpenAPI 3.1 and was dropped", category=DiagnosticCategory.STRUCTURAL
        )
        info.license.identifier = None
    return info


def fallback_servers(info: GeneralInfo) -> list[ServerEntry]:
    """Servers derived from ``@host``, ``@BasePath`` and ``@schemes``.

    Example::

        host=api.example.com base=/v1 schemes=[https] -> https://api.example.com/v1
        host=api.example.com base=/v1 schemes=[]      -> //api.example.com/v1
        host=None            base=/v1                 -> /v1
    """
    base = info.base_path or ""
    if base and not base.startswith("/"):
        base = "/" + base
    if not info.host:
        return [ServerEntry(url=base)] if base else []
    host = info.host.rstrip("/")
    if not info.schemes:
        return [ServerEntry(url=f"//{host}{base}")]
    return [ServerEntry(url=f"{scheme}://{host}{base}") for scheme in info.schemes]


# --- Operations ---


def _check_path_params(op: OperationFragment) -> None:
    placeholders = op.placeholders
    declared = [p for p in op.parameters if p.location is ParameterLocation.PATH]
    declared_names = {p.name for p in declared}
    for name in placeholders:
        if name not in declared_names:
            raise StructuralError(
                f"{op.label}: placeholder '{{{name}}}' has no path @Param", [op.location]
            )
    for param in declared:
        if param.name not in placeholders:
            raise StructuralError(
                f"{op.label}: path @Param '{param.name}' has no '{{{param.name}}}' placeholder in the route",
                [loc for loc in (param.source, op.location) if loc is not None],
            )


def _finalize_operation(
    op: OperationFragment,
    info: GeneralInfo,
    version: OpenAPIVersion,
    diagnostics: Diagnostics,
) -> OperationFragment:
    update: dict = {}
    if not op.consumes and info.consumes:
        update["consumes"] = list(info.consumes)
    if not op.produces and info.produces:
        update["produces"] = list(info.produces)
    if not version.is_31:
        responses = _first_response_wins(op, diagnostics)
        if responses is not None:
            update["responses"] = responses
    return op.model_copy(update=update) if update else op


def _first_response_wins(
    op: OperationFragment, diagnostics: Diagnostics
) -> Optional[dict[str, list[ResponseDef]]]:
    if all(len(items) <= 1 for items in op.responses.values()):
        return None
    collapsed: dict[str, list[ResponseDef]] = {}
    for code, items in op.responses.items():
        collapsed[code] = items[:1]
        for dropped in items[1:]:
            diagnostics.warn(
                f"{op.label}: OpenAPI 3.0 allows one response per status code; "
                f"additional {code} response dropped",
                dropped.source or op.location,
                DiagnosticCategory.STRUCTURAL,
            )
    return collapsed


def _check_security(
    info: GeneralInfo,
    paths: dict[str, dict[HTTPMethod, OperationFragment]],
    general: GeneralFragment,
    diagnostics: Diagnostics,
) -> None:
    declared = set(general.security_schemes)

    def check(requirements: Iterable[dict[str, list[str]]], label: str, location: Optional[SourceLocation]) -> None:
        for requirement in requirements:
            for name in requirement:
                if name not in declared:
                    diagnostics.warn(
                        f"{label}: security scheme '{name}' is not declared",
                        location,
                        DiagnosticCategory.STRUCTURAL,
                    )

    check(info.security, "@security", None)
    for methods in paths.values():
        for op in methods.values():
            if op.security:
                check(op.security, op.label, op.location)


def _check_operation_ids(
    paths: dict[str, dict[HTTPMethod, OperationFragment]], diagnostics: Diagnostics
) -> None:
    seen: dict[str, OperationFragment] = {}
    for methods in paths.values():
        for op in methods.values():
            if not op.operation_id:
                continue
            first = seen.setdefault(op.operation_id, op)
            if first is not op:
                diagnostics.warn(
                    f"operationId '{op.operation_id}' of {op.label} is already used by {first.label}",
                    op.location,
                    DiagnosticCategory.STRUCTURAL,
                )


# --- Reference validation ---


def validate_references(document: Document) -> None:
    """Ensure every ``$ref`` in *document* names an existing component.

    Raises:
        ResolutionError: Naming the first dangling reference found.
    """
    components = document.components
    for op in document.operations:
        for param in op.parameters:
            for name in collect_refs(param.type):
                if name not in components:
                    raise ResolutionError(name, op.label, (f"param {param.name}",), param.source)
        for code, responses in op.responses.items():
            for response in responses:
                refs = collect_refs(response.type) if response.type is not None else []
                for header in response.headers.values():
                    refs.extend(collect_refs(header.type))
                for name in refs:
                    if name not in components:
                        raise ResolutionError(name, op.label, (f"response {code}",), response.source)
    for owner, schema in components.items():
        for name in schema.iter_refs():
            if name not in components:
                raise ResolutionError(name, f"schema {owner}", (owner,))
