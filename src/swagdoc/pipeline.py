"""Run orchestration: discovery, per-file pass, barrier, resolution, assembly.

The per-file pass (read, tokenize, interpret, parse type declarations) is
independent for every file and runs on the worker pool. Each worker owns a
private :class:`~swagdoc.diagnostics.Diagnostics`. After the barrier the
results are merged in file order and everything else runs sequentially:

1. build and freeze the :class:`~swagdoc.schema.typetable.TypeTable`;
2. feed the entry file's general-info blocks to the accumulator;
3. seed and drain the :class:`~swagdoc.schema.resolver.SchemaResolver`;
4. assemble the :class:`~swagdoc.models.Document`.

A fatal error aborts the run before anything is written and carries the
full warning list recorded up to that point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from swagdoc.diagnostics import Diagnostics
from swagdoc.directives.interpreter import (
    GeneralInfoAccumulator,
    interpret_operation,
    is_router_block,
)
from swagdoc.document.assembler import assemble
from swagdoc.exceptions import SwagdocError
from swagdoc.models import (
    DeclarationKind,
    Directive,
    DirectiveKind,
    Document,
    GenerateConfig,
    OperationFragment,
    StructDef,
)
from swagdoc.scanner.gosource import read_go_file
from swagdoc.scanner.locator import SourceFile, discover_sources, process_in_parallel
from swagdoc.scanner.tokenizer import tokenize
from swagdoc.schema.resolver import SchemaResolver
from swagdoc.schema.typetable import TypeTable, build_struct_def

logger = logging.getLogger(__name__)


@dataclass
class FileResult:
    """What the per-file pass produced for one source file."""

    source: SourceFile
    operations: list[OperationFragment] = field(default_factory=list)
    structs: list[StructDef] = field(default_factory=list)
    general_blocks: list[list[Directive]] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


def process_file(source: SourceFile, is_entry: bool) -> FileResult:
    """Scan one file. Never touches state shared with other workers."""
    result = FileResult(source=source)
    go_file = read_go_file(source.path, source.display)
    context = go_file.context

    for block in go_file.blocks:
        directives = tokenize(block)
        declaration = block.declaration
        if declaration is not None and declaration.kind is DeclarationKind.TYPE:
            for directive in directives:
                if directive.kind is DirectiveKind.UNKNOWN:
                    result.diagnostics.warn(f"unknown directive @{directive.keyword}", directive.location)
            continue
        if not block.is_free_standing and is_router_block(directives):
            result.operations.extend(
                interpret_operation(block, directives, context, result.diagnostics)
            )
        elif is_entry:
            if directives:
                result.general_blocks.append(directives)
        elif not block.is_free_standing:
            interpret_operation(block, directives, context, result.diagnostics)
        elif directives:
            result.diagnostics.warn(
                "free-standing directives are only read from the general info file",
                block.location,
            )

    for decl in go_file.types:
        struct = build_struct_def(decl, context, source.display, result.diagnostics)
        if struct is not None:
            result.structs.append(struct)
    return result


def generate_document(
    config: GenerateConfig,
    diagnostics: Optional[Diagnostics] = None,
) -> tuple[Document, Diagnostics]:
    """Run the whole pipeline for *config*.

    Args:
        config: Effective run configuration.
        diagnostics: Collector to append to; a new one when omitted.

    Returns:
        The assembled document and every warning recorded.

    Raises:
        ConfigurationError: Before scanning, for an invalid file set.
        StructuralError: For contradictory or incomplete annotations.
        ResolutionError: For a type reference without a declaration.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    try:
        return _run(config, diagnostics), diagnostics
    except SwagdocError as exc:
        exc.warnings = diagnostics.warnings
        raise


def _run(config: GenerateConfig, diagnostics: Diagnostics) -> Document:
    sources = discover_sources(config)
    entry = sources.general_info.display

    results = process_in_parallel(
        sources.files,
        lambda source: process_file(source, source.display == entry),
        config.workers,
    )

    operations: list[OperationFragment] = []
    structs: list[StructDef] = []
    general_blocks: list[list[Directive]] = []
    for result in results:
        diagnostics.extend(result.diagnostics)
        operations.extend(result.operations)
        structs.extend(result.structs)
        general_blocks.extend(result.general_blocks)
    logger.debug("barrier: %d operations, %d types", len(operations), len(structs))

    table = TypeTable.build(structs, diagnostics)

    accumulator = GeneralInfoAccumulator(diagnostics)
    for directives in general_blocks:
        accumulator.feed(directives)
    general = accumulator.build()

    resolver = SchemaResolver(table)
    resolver.seed(operations)
    components = resolver.resolve()

    return assemble(general, operations, components, config.openapi_version, diagnostics, entry)
