"""Serialize a rendered document to disk.

``openapi.json`` and ``openapi.yaml`` are written atomically (temp file in
the same directory, then :func:`os.replace`), so a crash never leaves a
truncated document behind.

When the serialized JSON is larger than the configured threshold, the
document is written to ``openapi-split/`` instead, partitioned along
section boundaries only:

* ``base.json`` -- everything except ``paths`` and ``components.schemas``;
* ``paths-NNN.json`` -- whole path items;
* ``schemas-NNN.json`` -- whole component schemas.

Chunks are filled greedily up to the threshold; an entry that is larger on
its own gets a chunk to itself. ``manifest.json`` lists the chunks in merge
order with the section each one merges into and the keys it holds.
:func:`merge_chunks` performs the sequential fetch-and-merge a loader
would do.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from swagdoc.diagnostics import Diagnostics
from swagdoc.exceptions import EmitError
from swagdoc.models import DiagnosticCategory, OutputKind

logger = logging.getLogger(__name__)

SPLIT_DIR = "openapi-split"
MANIFEST_NAME = "manifest.json"
MANIFEST_VERSION = 1

_SECTION_PATHS = "paths"
_SECTION_SCHEMAS = "components.schemas"


@dataclass
class WriteResult:
    """Files produced by :func:`write_outputs`, in write order."""

    files: list[Path] = field(default_factory=list)
    split: bool = False


def atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a temp file and rename.

    The temporary file is created next to *path* so that ``os.replace``
    is an atomic rename on POSIX systems. It is removed on any failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def to_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def to_yaml(document: dict[str, Any]) -> str:
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True, width=120)


def write_outputs(
    document: dict[str, Any],
    output_dir: Path,
    kinds: Sequence[OutputKind],
    max_file_size_mb: float,
    diagnostics: Optional[Diagnostics] = None,
) -> WriteResult:
    """Write the selected output kinds into *output_dir*.

    Args:
        document: The rendered OpenAPI mapping.
        output_dir: Created if missing.
        kinds: Requested kinds; ``go`` and ``ui`` are skipped with a warning.
        max_file_size_mb: Size above which the split layout is used.
        diagnostics: Receives the skipped-kind warnings.

    Returns:
        The written files.

    Raises:
        EmitError: If the directory or a file cannot be written.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    result = WriteResult()
    limit = int(max_file_size_mb * 1024 * 1024)

    for kind in dict.fromkeys(kinds):
        if kind in (OutputKind.GO, OutputKind.UI):
            diagnostics.warn(
                f"output type '{kind.value}' is not generated by swagdoc and was skipped",
                category=DiagnosticCategory.CONFIGURATION,
            )

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        rendered: list[tuple[Path, str]] = []
        if OutputKind.JSON in kinds:
            rendered.append((output_dir / "openapi.json", to_json(document)))
        if OutputKind.YAML in kinds:
            rendered.append((output_dir / "openapi.yaml", to_yaml(document)))

        if any(len(text.encode("utf-8")) > limit for _, text in rendered):
            logger.debug("document exceeds %d bytes, writing split layout", limit)
            result.files.extend(write_split(document, output_dir / SPLIT_DIR, limit))
            result.split = True
            return result

        for path, text in rendered:
            atomic_write(path, text)
            result.files.append(path)
    except OSError as exc:
        raise EmitError(f"Cannot write output to {output_dir}: {exc}") from exc

    logger.debug("wrote %s", ", ".join(str(p) for p in result.files))
    return result


# --- Splitting ---


def _size(value: Any) -> int:
    return len(json.dumps(value, ensure_ascii=False).encode("utf-8"))


def _partition(entries: dict[str, Any], limit: int) -> list[dict[str, Any]]:
    chunks: list[dict[str, Any]] = []
    current: dict[str, Any] = {}
    current_size = 0
    for key, value in entries.items():
        size = _size({key: value})
        if current and current_size + size > limit:
            chunks.append(current)
            current, current_size = {}, 0
        current[key] = value
        current_size += size
    if current:
        chunks.append(current)
    return chunks


def write_split(document: dict[str, Any], split_dir: Path, limit: int) -> list[Path]:
    """Write *document* as section chunks plus a manifest into *split_dir*.

    Returns:
        The chunk files followed by the manifest.
    """
    base = {key: value for key, value in document.items() if key != "paths"}
    components = dict(base.get("components", {}))
    schemas = components.pop("schemas", {})
    if components:
        base["components"] = components
    else:
        base.pop("components", None)

    entries: list[dict[str, Any]] = []
    written: list[Path] = []

    def emit(name: str, section: Optional[str], payload: dict[str, Any]) -> None:
        path = split_dir / name
        atomic_write(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
        written.append(path)
        entries.append({
            "file": name,
            "section": section,
            "keys": [] if section is None else list(payload),
        })

    emit("base.json", None, base)
    for index, chunk in enumerate(_partition(document.get("paths", {}), limit), start=1):
        emit(f"paths-{index:03d}.json", _SECTION_PATHS, chunk)
    for index, chunk in enumerate(_partition(schemas, limit), start=1):
        emit(f"schemas-{index:03d}.json", _SECTION_SCHEMAS, chunk)

    manifest_path = split_dir / MANIFEST_NAME
    manifest = {"version": MANIFEST_VERSION, "openapi": document.get("openapi"), "chunks": entries}
    atomic_write(manifest_path, json.dumps(manifest, indent=2) + "\n")
    written.append(manifest_path)
    logger.debug("split document into %d chunks", len(entries))
    return written


def merge_chunks(manifest_path: Path) -> dict[str, Any]:
    """Rebuild the full document from a split layout.

    Raises:
        EmitError: If the manifest or a chunk is missing or malformed.
    """
    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        document: dict[str, Any] = {}
        for entry in manifest["chunks"]:
            payload = json.loads((manifest_path.parent / entry["file"]).read_text(encoding="utf-8"))
            section = entry["section"]
            if section is None:
                document.update(payload)
            elif section == _SECTION_PATHS:
                document.setdefault("paths", {}).update(payload)
            elif section == _SECTION_SCHEMAS:
                document.setdefault("components", {}).setdefault("schemas", {}).update(payload)
            else:
                raise EmitError(f"Unknown section '{section}' in {manifest_path}")
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise EmitError(f"Cannot merge chunks from {manifest_path}: {exc}") from exc
    return _reorder(document)


def _reorder(document: dict[str, Any]) -> dict[str, Any]:
    order = ["openapi", "info", "externalDocs", "servers", "tags", "security", "paths", "components"]
    ordered = {key: document[key] for key in order if key in document}
    ordered.update({key: value for key, value in document.items() if key not in ordered})
    components = ordered.get("components")
    if isinstance(components, dict) and "schemas" in components:
        ordered["components"] = {"schemas": components["schemas"], **{
            key: value for key, value in components.items() if key != "schemas"
        }}
    return ordered
