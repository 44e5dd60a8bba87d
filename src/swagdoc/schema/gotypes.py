"""Go type expressions and their mapping onto OpenAPI primitives.

:func:`parse_type_expr` turns the text of a Go type (``[]*model.User``,
``map[string]int64``, ``Envelope{data=model.User}``) into a
:class:`~swagdoc.models.TypeRef` whose ``name`` is fully qualified with
the help of a :class:`FileContext`. Qualification follows Go's own rules
closely enough for documentation purposes:

* an unqualified identifier belongs to the referencing file's package;
* ``alias.Type`` is looked up in the file's imports and named after the
  last segment of the import path (``gopkg.in/yaml.v3`` is ``yaml``,
  ``example.com/api/v2`` is ``api``);
* an alias that is not imported is used as the package name directly,
  which is how handlers usually refer to model packages in directives.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from swagdoc.exceptions import DirectiveSyntaxError
from swagdoc.models import SchemaNode, TypeRef, WrapperKind

# name -> (type, format)
PRIMITIVES: dict[str, tuple[Optional[str], Optional[str]]] = {
    "string": ("string", None),
    "bool": ("boolean", None),
    "boolean": ("boolean", None),
    "int": ("integer", None),
    "uint": ("integer", None),
    "uintptr": ("integer", None),
    "integer": ("integer", None),
    "int8": ("integer", "int32"),
    "int16": ("integer", "int32"),
    "int32": ("integer", "int32"),
    "uint8": ("integer", "int32"),
    "uint16": ("integer", "int32"),
    "uint32": ("integer", "int32"),
    "byte": ("integer", "int32"),
    "rune": ("integer", "int32"),
    "int64": ("integer", "int64"),
    "uint64": ("integer", "int64"),
    "float32": ("number", "float"),
    "float64": ("number", "double"),
    "number": ("number", None),
    "object": ("object", None),
    "file": ("string", None),
    "any": (None, None),
    "[]byte": ("string", "byte"),
    "time.Time": ("string", "date-time"),
    "time.Duration": ("integer", "int64"),
    "uuid.UUID": ("string", "uuid"),
    "json.RawMessage": (None, None),
    "json.Number": ("number", None),
    "decimal.Decimal": ("number", None),
}
"""Names that resolve to an inline schema instead of a component."""

_ANY_SPELLINGS = {"interface{}", "interface {}", "any"}
_UNSUPPORTED_PREFIXES = ("chan ", "chan<-", "<-chan", "func(", "func (")
_IDENT_RE = re.compile(r"^[A-Za-z_][\w]*(?:\.[A-Za-z_][\w]*)*$")
_QUALIFIED_RE = re.compile(r"^(?P<pkg>[\w./-]+)\.(?P<name>[A-Za-z_]\w*)$")
_FIXED_ARRAY_RE = re.compile(r"^\[\s*[\w.]*\s*\]")
_MAJOR_VERSION_RE = re.compile(r"^v\d+$")


def is_primitive(name: str) -> bool:
    return name in PRIMITIVES


def package_name(import_path: str) -> str:
    """Guess the Go package name for *import_path*.

    Uses the last path segment, skipping a ``vN`` major-version segment
    and a ``.vN`` suffix, and dropping ``go-`` / ``-go`` decorations.

    Example::

        >>> package_name("github.com/acme/shop/internal/model")
        'model'
        >>> package_name("gopkg.in/yaml.v3")
        'yaml'
    """
    segments = [s for s in import_path.strip("/").split("/") if s]
    if not segments:
        return import_path
    last = segments[-1]
    if _MAJOR_VERSION_RE.match(last) and len(segments) > 1:
        last = segments[-2]
    last = re.sub(r"\.v\d+$", "", last)
    if last.startswith("go-"):
        last = last[3:]
    if last.endswith("-go"):
        last = last[:-3]
    return last.replace("-", "_")


@dataclass
class FileContext:
    """The naming scope of one Go source file.

    Attributes:
        package: Package clause of the file.
        imports: Import alias (or inferred package name) to import path.
    """

    package: str
    imports: dict[str, str] = field(default_factory=dict)

    def qualify(self, ident: str) -> str:
        """Return the fully-qualified name for the identifier *ident*."""
        if is_primitive(ident):
            return ident
        match = _QUALIFIED_RE.match(ident)
        if match is None:
            return f"{self.package}.{ident}"
        alias, name = match.group("pkg"), match.group("name")
        if alias in self.imports:
            pkg = package_name(self.imports[alias])
        elif "/" in alias:
            pkg = package_name(alias)
        else:
            pkg = alias
        return f"{pkg}.{name}"


def parse_type_expr(text: str, context: FileContext) -> TypeRef:
    """Parse a Go type expression into a :class:`TypeRef`.

    Args:
        text: The type as written, e.g. ``[]*model.User``.
        context: Scope used to qualify named types.

    Returns:
        The parsed reference.

    Raises:
        DirectiveSyntaxError: For empty, unbalanced or unsupported
            expressions (channels, functions, generic instantiations).
    """
    text = text.strip()
    if not text:
        raise DirectiveSyntaxError("empty type expression")

    if text.startswith("*"):
        return parse_type_expr(text[1:], context).wrap(WrapperKind.POINTER)
    if text.startswith("[]"):
        inner = text[2:].strip()
        if inner in ("byte", "uint8"):
            return TypeRef(name="[]byte")
        return parse_type_expr(inner, context).wrap(WrapperKind.ARRAY)
    fixed = _FIXED_ARRAY_RE.match(text)
    if fixed:
        return parse_type_expr(text[fixed.end():], context).wrap(WrapperKind.ARRAY)
    if text.startswith("map["):
        close = _matching_bracket(text, 3, "[", "]")
        return parse_type_expr(text[close + 1:], context).wrap(WrapperKind.MAP)
    if text in _ANY_SPELLINGS:
        return TypeRef(name="any")
    if re.match(r"^struct\s*\{\s*\}$", text):
        return TypeRef(name="object")
    if text.startswith(_UNSUPPORTED_PREFIXES) or text == "chan":
        raise DirectiveSyntaxError(f"unsupported type '{text}'")

    overrides: tuple[tuple[str, TypeRef], ...] = ()
    brace = text.find("{")
    if brace > 0:
        if not text.endswith("}"):
            raise DirectiveSyntaxError(f"unbalanced braces in type '{text}'")
        overrides = _parse_overrides(text[brace + 1:-1], context)
        text = text[:brace].strip()

    if "[" in text:
        raise DirectiveSyntaxError(f"generic type '{text}' is not supported")
    if not _IDENT_RE.match(text) and not _QUALIFIED_RE.match(text):
        raise DirectiveSyntaxError(f"invalid type '{text}'")
    return TypeRef(name=context.qualify(text), overrides=overrides)


def _parse_overrides(body: str, context: FileContext) -> tuple[tuple[str, TypeRef], ...]:
    pairs: list[tuple[str, TypeRef]] = []
    for part in split_top_level(body, ","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise DirectiveSyntaxError(f"invalid field override '{part}', expected field=Type")
        pairs.append((key.strip(), parse_type_expr(value, context)))
    return tuple(pairs)


def _matching_bracket(text: str, start: int, opening: str, closing: str) -> int:
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return index
    raise DirectiveSyntaxError(f"unbalanced '{opening}' in type '{text}'")


def split_top_level(text: str, separator: str) -> list[str]:
    """Split *text* on *separator* outside of ``()``, ``[]`` and ``{}``."""
    parts: list[str] = []
    depth = 0
    current = ""
    for char in text:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        if char == separator and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts


# --- Inline schemas ---


def primitive_schema(name: str) -> SchemaNode:
    """Return the inline schema for the primitive *name*."""
    schema_type, schema_format = PRIMITIVES[name]
    if name == "file":
        return SchemaNode(type="string", binary=True)
    return SchemaNode(type=schema_type, format=schema_format)


def inline_schema(
    ref: TypeRef,
    on_named: Optional[Callable[[str], None]] = None,
) -> SchemaNode:
    """Build the use-site schema for *ref*.

    Primitives are inlined, named types become ``$ref`` nodes and every
    array/map wrapper adds one schema level around the item schema.
    Pointers are transparent. *on_named* is called with each referenced
    component name.
    """
    node = _base_schema(ref, on_named)
    for kind in reversed(ref.wrappers):
        if kind is WrapperKind.ARRAY:
            node = SchemaNode(type="array", items=node)
        elif kind is WrapperKind.MAP:
            node = SchemaNode(type="object", additional_properties=node)
    return node


def _base_schema(ref: TypeRef, on_named: Optional[Callable[[str], None]]) -> SchemaNode:
    if is_primitive(ref.name):
        base = primitive_schema(ref.name)
    else:
        if on_named is not None:
            on_named(ref.name)
        base = SchemaNode(ref=ref.name)
    if not ref.overrides:
        return base
    replaced = {key: inline_schema(target, on_named) for key, target in ref.overrides}
    return SchemaNode(all_of=[base, SchemaNode(type="object", properties=replaced)])


# --- Literals ---


def schema_type_of(ref: TypeRef) -> Optional[str]:
    """The OpenAPI type of *ref* once pointers are stripped, if known."""
    ref = ref.strip_pointers()
    if ref.wrappers:
        return "array" if ref.wrappers[0] is WrapperKind.ARRAY else "object"
    if is_primitive(ref.name):
        return PRIMITIVES[ref.name][0]
    return None


def item_ref(ref: TypeRef) -> TypeRef:
    """The element type of an array reference; *ref* itself otherwise."""
    ref = ref.strip_pointers()
    if ref.wrappers and ref.wrappers[0] is WrapperKind.ARRAY:
        return ref.model_copy(update={"wrappers": ref.wrappers[1:]})
    return ref


def coerce_literal(raw: str, ref: TypeRef) -> Any:
    """Convert the literal *raw* to a value matching the type of *ref*.

    Arrays take comma-separated items. Values that do not parse as the
    expected type are kept as strings.
    """
    raw = raw.strip()
    schema_type = schema_type_of(ref)
    if schema_type == "array":
        item = item_ref(ref)
        return [coerce_literal(part, item) for part in raw.split(",") if part.strip()]
    if schema_type == "integer":
        try:
            return int(raw)
        except ValueError:
            return raw
    if schema_type == "number":
        try:
            return float(raw)
        except ValueError:
            return raw
    if schema_type == "boolean":
        if raw.lower() in ("true", "false"):
            return raw.lower() == "true"
        return raw
    if schema_type == "string":
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return raw
