"""Line-level reader for Go source files.

Extracts exactly what annotation processing needs and nothing more: the
package clause, imports, column-0 ``//`` comment blocks with the top-level
declaration each one precedes, and the bodies of type declarations. It
relies on ``gofmt`` layout (top-level declarations and their doc comments
start at column 0) instead of a full Go parser.

Block comments (``/* ... */``) and multi-line raw strings are skipped so
that their contents are never mistaken for declarations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from swagdoc.models import CommentBlock, Declaration, DeclarationKind
from swagdoc.schema.gotypes import FileContext, package_name

_PACKAGE_RE = re.compile(r"^package\s+([A-Za-z_]\w*)")
_IMPORT_SPEC_RE = re.compile(r'^(?:(?P<alias>[A-Za-z_]\w*|\.)\s+)?"(?P<path>[^"]+)"')
_FUNC_RE = re.compile(
    r"^func\s+(?:\((?P<recv>[^)]*)\)\s*)?(?P<name>[A-Za-z_]\w*)"
)
_TYPE_SPEC_RE = re.compile(
    r"^(?P<name>[A-Za-z_]\w*)(?P<generic>\[[^\]]*\])?\s*(?P<alias>=)?\s*(?P<rest>.*)$"
)
_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')
_RAW_SEGMENT_RE = re.compile(r"`[^`]*`")


@dataclass
class TypeDecl:
    """A type declaration found at top level or inside a ``type ( ... )`` group.

    Attributes:
        name: Declared identifier.
        line: Line of the declaration.
        expr: The type expression for non-struct types; ``"struct"`` for
            structs.
        body: ``(line, text)`` pairs between the struct braces.
        generic: Whether the declaration has type parameters.
        doc: Doc comment lines, without the ``//`` prefix.
    """

    name: str
    line: int
    expr: str
    body: list[tuple[int, str]] = field(default_factory=list)
    generic: bool = False
    doc: list[str] = field(default_factory=list)

    @property
    def is_struct(self) -> bool:
        return self.expr == "struct"


@dataclass
class GoFile:
    """Everything extracted from one ``.go`` file."""

    path: str
    package: str = ""
    imports: dict[str, str] = field(default_factory=dict)
    blocks: list[CommentBlock] = field(default_factory=list)
    types: list[TypeDecl] = field(default_factory=list)

    @property
    def context(self) -> FileContext:
        return FileContext(package=self.package, imports=dict(self.imports))


def read_go_file(path: Path, display_path: Optional[str] = None) -> GoFile:
    """Read and scan the Go file at *path*.

    Args:
        path: File to read.
        display_path: Path recorded in source locations; defaults to
            ``str(path)``.
    """
    source = path.read_text(encoding="utf-8", errors="replace")
    return scan_go_source(source, display_path or str(path))


def scan_go_source(source: str, path: str) -> GoFile:
    """Scan Go *source* text recorded under *path*."""
    return _GoScanner(source.splitlines(), path).scan()


def _code_part(line: str) -> str:
    """Strip string literals, raw-string segments and a trailing ``//`` comment."""
    code = _RAW_SEGMENT_RE.sub("``", _STRING_RE.sub('""', line))
    index = code.find("//")
    return code if index < 0 else code[:index]


def _brace_delta(line: str) -> int:
    code = _code_part(line)
    return code.count("{") - code.count("}")


class _GoScanner:
    def __init__(self, lines: list[str], path: str) -> None:
        self._lines = lines
        self._result = GoFile(path=path)
        self._pending: list[str] = []
        self._pending_start = 0
        self._index = 0

    def scan(self) -> GoFile:
        while self._index < len(self._lines):
            line = self._lines[self._index]
            line_no = self._index + 1
            self._index += 1

            if line.startswith("//"):
                if not self._pending:
                    self._pending_start = line_no
                self._pending.append(line[2:])
                continue
            if not line.strip():
                self._flush(None)
                continue

            declaration = self._declaration(line, line_no)
            self._flush(declaration)
            self._statement(line, line_no)

        self._flush(None)
        return self._result

    def _flush(self, declaration: Optional[Declaration]) -> None:
        if not self._pending:
            return
        self._result.blocks.append(
            CommentBlock(
                lines=self._pending,
                file=self._result.path,
                start_line=self._pending_start,
                declaration=declaration,
            )
        )
        self._pending = []

    def _declaration(self, line: str, line_no: int) -> Optional[Declaration]:
        match = _FUNC_RE.match(line)
        if match:
            name = match.group("name")
            receiver = match.group("recv")
            if receiver:
                recv_type = receiver.split()[-1].lstrip("*")
                recv_type = recv_type.split("[", 1)[0]
                name = f"{recv_type}.{name}"
            return Declaration(kind=DeclarationKind.FUNC, name=name, line=line_no)
        if line.startswith("type "):
            spec = _TYPE_SPEC_RE.match(line[5:].strip())
            if spec and line[5:].strip() != "(":
                return Declaration(kind=DeclarationKind.TYPE, name=spec.group("name"), line=line_no)
        return None

    # --- statements ---

    def _statement(self, line: str, line_no: int) -> None:
        stripped = line.strip()
        if not self._result.package:
            match = _PACKAGE_RE.match(stripped)
            if match:
                self._result.package = match.group(1)
                return
        if stripped.startswith("import"):
            self._imports(stripped)
            return
        if line.startswith("type "):
            doc = self._last_block_lines(line_no)
            rest = line[5:].strip()
            if rest.startswith("("):
                self._type_group()
            else:
                self._type_spec(rest, line_no, doc)
            return
        if stripped.startswith("/*") and "*/" not in stripped[2:]:
            self._skip_until(lambda text: "*/" in text)
            return
        if _code_part(line).count("`") % 2 == 1:
            self._skip_until(lambda text: text.count("`") % 2 == 1)
            return
        if line.startswith(("func ", "var (", "const (")) and _brace_delta(line) > 0:
            self._skip_block(_brace_delta(line))
            return
        if line.startswith(("var (", "const (")):
            self._skip_until(lambda text: text.strip() == ")")

    def _last_block_lines(self, line_no: int) -> list[str]:
        blocks = self._result.blocks
        if blocks and blocks[-1].declaration is not None and blocks[-1].declaration.line == line_no:
            return [text.strip() for text in blocks[-1].lines]
        return []

    def _imports(self, stripped: str) -> None:
        rest = stripped[len("import"):].strip()
        if rest.startswith("("):
            rest = rest[1:].strip()
            if rest:
                self._import_spec(rest.rstrip(")").strip())
            if ")" in stripped:
                return
            while self._index < len(self._lines):
                text = self._lines[self._index].strip()
                self._index += 1
                if text.startswith(")"):
                    return
                self._import_spec(text)
            return
        self._import_spec(rest)

    def _import_spec(self, text: str) -> None:
        match = _IMPORT_SPEC_RE.match(text)
        if not match:
            return
        alias = match.group("alias")
        path = match.group("path")
        if alias in ("_", "."):
            return
        self._result.imports[alias or package_name(path)] = path

    def _type_group(self) -> None:
        doc: list[str] = []
        while self._index < len(self._lines):
            line = self._lines[self._index]
            line_no = self._index + 1
            self._index += 1
            stripped = line.strip()
            if stripped.startswith(")"):
                return
            if not stripped:
                doc = []
                continue
            if stripped.startswith("//"):
                doc.append(stripped[2:].strip())
                continue
            self._type_spec(stripped, line_no, doc)
            doc = []

    def _type_spec(self, text: str, line_no: int, doc: list[str]) -> None:
        match = _TYPE_SPEC_RE.match(text)
        if not match:
            return
        rest = match.group("rest")
        decl = TypeDecl(
            name=match.group("name"),
            line=line_no,
            expr="",
            generic=bool(match.group("generic")),
            doc=list(doc),
        )
        code = _code_part(rest).strip()
        if re.match(r"^struct\s*\{", code):
            decl.expr = "struct"
            delta = _brace_delta(rest)
            if delta <= 0:
                inner = rest[rest.find("{") + 1:rest.rfind("}")]
                if inner.strip():
                    decl.body.append((line_no, inner))
            else:
                decl.body = self._collect_block(delta)
        elif re.match(r"^interface\s*\{", code):
            decl.expr = "interface{}"
            delta = _brace_delta(rest)
            if delta > 0:
                self._skip_block(delta)
        else:
            decl.expr = code
        self._result.types.append(decl)

    # --- block helpers ---

    def _collect_block(self, depth: int) -> list[tuple[int, str]]:
        body: list[tuple[int, str]] = []
        while self._index < len(self._lines):
            line = self._lines[self._index]
            line_no = self._index + 1
            self._index += 1
            depth += _brace_delta(line)
            if depth <= 0:
                return body
            body.append((line_no, line))
        return body

    def _skip_block(self, depth: int) -> None:
        while self._index < len(self._lines) and depth > 0:
            depth += _brace_delta(self._lines[self._index])
            self._index += 1

    def _skip_until(self, predicate) -> None:  # noqa: ANN001
        while self._index < len(self._lines):
            text = self._lines[self._index]
            self._index += 1
            if predicate(text):
                return
