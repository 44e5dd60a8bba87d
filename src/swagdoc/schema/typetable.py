"""Type Table: every declared data type, indexed by fully-qualified name.

Struct bodies and field tags are parsed here, once, when a
:class:`~swagdoc.scanner.gosource.TypeDecl` is turned into a
:class:`~swagdoc.models.StructDef`. The table is filled during the
per-file pass, frozen at the scanning barrier, and read-only afterwards.

Supported field tags::

    json:"name,omitempty"       property name, "-" skips the field
    example:"42"                example value, coerced to the field type
    default:"x"  enums:"a,b"    default value and allowed values
    format:"email"              schema format
    minimum:"1"  maximum:"9"    numeric bounds
    minLength:"1" maxLength:"9" string bounds
    binding:"required"          also validate:"required"
    swaggertype:"string"        override the documented type
    swaggerignore:"true"        skip the field
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator, Optional

from swagdoc.diagnostics import Diagnostics
from swagdoc.exceptions import DirectiveSyntaxError
from swagdoc.models import FieldDef, SourceLocation, StructDef, TypeRef, WrapperKind
from swagdoc.schema.gotypes import FileContext, coerce_literal, item_ref, parse_type_expr
from swagdoc.scanner.gosource import TypeDecl

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'([\w-]+):"((?:[^"\\]|\\.)*)"')
_TRAILING_TAG_RE = re.compile(r"`([^`]*)`\s*$")
_NAMED_FIELD_RE = re.compile(r"^(?P<names>[A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*)\s+(?P<type>\S.*)$")
_NESTED_STRUCT_RE = re.compile(r"\bstruct\s*\{")


class TypeTable:
    """Mapping from fully-qualified type name to :class:`StructDef`.

    Lookup by name is the only access path. :meth:`lookup` returns
    ``None`` for an unknown name; deciding what that means is the
    caller's job.
    """

    def __init__(self) -> None:
        self._types: dict[str, StructDef] = {}
        self._frozen = False

    @classmethod
    def build(cls, structs: Iterable[StructDef], diagnostics: Diagnostics) -> TypeTable:
        """Index *structs* in order; a repeated name keeps the first one.

        Args:
            structs: Declarations in merge order (file path, then line).
            diagnostics: Receives one warning per ignored duplicate.

        Returns:
            A frozen table.
        """
        table = cls()
        for struct in structs:
            existing = table.add(struct)
            if existing is not None:
                diagnostics.warn(
                    f"type '{struct.name}' is already declared at {existing.location}; "
                    "this declaration is ignored",
                    struct.location,
                )
        table.freeze()
        logger.debug("type table holds %d types", len(table))
        return table

    def add(self, struct: StructDef) -> Optional[StructDef]:
        """Add *struct* unless its name is taken.

        Returns:
            The previously registered definition when the name was
            already present, ``None`` when *struct* was added.

        Raises:
            RuntimeError: If the table has been frozen.
        """
        if self._frozen:
            raise RuntimeError("type table is frozen")
        existing = self._types.get(struct.name)
        if existing is not None:
            return existing
        self._types[struct.name] = struct
        return None

    def freeze(self) -> None:
        self._frozen = True

    def lookup(self, name: str) -> Optional[StructDef]:
        return self._types.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[StructDef]:
        return iter(self._types.values())


# --- Declarations ---


def build_struct_def(
    decl: TypeDecl,
    context: FileContext,
    file: str,
    diagnostics: Diagnostics,
) -> Optional[StructDef]:
    """Turn a scanned type declaration into a :class:`StructDef`.

    Generic declarations and declarations whose type cannot be parsed are
    skipped with a warning.
    """
    location = SourceLocation(file=file, line=decl.line)
    if decl.generic:
        diagnostics.warn(f"generic type '{decl.name}' is not supported and was skipped", location)
        return None

    description = _doc_text(decl.doc) or None
    name = f"{context.package}.{decl.name}"
    if decl.is_struct:
        fields = parse_struct_fields(decl.body, context, file, diagnostics)
        return StructDef(
            name=name,
            package=context.package,
            fields=fields,
            description=description,
            location=location,
        )
    try:
        underlying = parse_type_expr(decl.expr, context)
    except DirectiveSyntaxError as exc:
        diagnostics.warn(f"type '{decl.name}' skipped: {exc}", location)
        return None
    return StructDef(
        name=name,
        package=context.package,
        underlying=underlying,
        description=description,
        location=location,
    )


def _doc_text(lines: list[str]) -> str:
    kept = [line.strip() for line in lines if not line.strip().startswith("@")]
    return " ".join(line for line in kept if line).strip()


# --- Struct bodies ---


def parse_struct_fields(
    body: list[tuple[int, str]],
    context: FileContext,
    file: str,
    diagnostics: Diagnostics,
) -> list[FieldDef]:
    """Parse the lines between a struct's braces into field definitions.

    Doc comments directly above a field and a trailing ``//`` comment
    become the field description. Anonymous nested structs are skipped
    with a warning.
    """
    fields: list[FieldDef] = []
    doc: list[str] = []
    skip_depth = 0

    for line_no, raw in body:
        stripped = raw.strip()
        if skip_depth > 0:
            skip_depth += stripped.count("{") - stripped.count("}")
            continue
        if not stripped:
            doc = []
            continue
        if stripped.startswith("//"):
            doc.append(stripped[2:].strip())
            continue

        location = SourceLocation(file=file, line=line_no)
        code, comment = split_trailing_comment(stripped)
        if _NESTED_STRUCT_RE.search(code) and code.count("{") > code.count("}"):
            diagnostics.warn("anonymous nested struct fields are not supported", location)
            skip_depth = code.count("{") - code.count("}")
            doc = []
            continue

        description = comment or _doc_text(doc) or None
        doc = []
        try:
            fields.extend(_parse_field_line(code, context, description, location, diagnostics))
        except DirectiveSyntaxError as exc:
            diagnostics.warn(f"field skipped: {exc}", location)
    return fields


def split_trailing_comment(line: str) -> tuple[str, Optional[str]]:
    """Split a line into code and the text of a trailing ``//`` comment."""
    quote: Optional[str] = None
    index = 0
    while index < len(line):
        char = line[index]
        if quote:
            if char == "\\" and quote == '"':
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in ('"', "`"):
            quote = char
        elif line.startswith("//", index):
            return line[:index].rstrip(), line[index + 2:].strip() or None
        index += 1
    return line, None


def parse_tag(tag: str) -> dict[str, str]:
    """Parse a Go struct tag body (``json:"id" example:"1"``) into a dict."""
    return {key: value for key, value in _TAG_RE.findall(tag)}


def _parse_field_line(
    code: str,
    context: FileContext,
    description: Optional[str],
    location: SourceLocation,
    diagnostics: Diagnostics,
) -> list[FieldDef]:
    tags: dict[str, str] = {}
    tag_match = _TRAILING_TAG_RE.search(code)
    if tag_match:
        tags = parse_tag(tag_match.group(1))
        code = code[:tag_match.start()].rstrip()

    named = _NAMED_FIELD_RE.match(code)
    if named:
        names = [n.strip() for n in named.group("names").split(",")]
        type_text = named.group("type")
        embedded = False
    else:
        type_text = code
        names = [code.lstrip("*").rsplit(".", 1)[-1]]
        embedded = True

    if tags.get("swaggerignore", "").lower() == "true":
        return []

    json_name, json_options = _json_tag(tags.get("json"))
    if json_name == "-" and not json_options:
        return []
    if embedded and json_name:
        embedded = False

    field_type = parse_type_expr(type_text, context)
    if "swaggertype" in tags:
        field_type = _swagger_type(tags["swaggertype"])
    elif "string" in json_options:
        field_type = TypeRef(name="string")

    required = _is_required(tags, json_options, field_type)
    fields: list[FieldDef] = []
    for name in names:
        if not embedded and not name[0].isupper():
            continue
        field = FieldDef(
            name=name,
            type=field_type,
            json_name=json_name if len(names) == 1 else None,
            required=required and not embedded,
            embedded=embedded,
            description=description,
            location=location,
        )
        fields.append(_apply_value_tags(field, tags, diagnostics))
    return fields


def _json_tag(value: Optional[str]) -> tuple[Optional[str], list[str]]:
    if value is None:
        return None, []
    name, *options = value.split(",")
    return (name or None), options


def _swagger_type(value: str) -> TypeRef:
    parts = [p.strip() for p in value.split(",") if p.strip()]
    if not parts:
        raise DirectiveSyntaxError("empty swaggertype tag")
    if parts[0] == "primitive" and len(parts) == 2:
        return TypeRef(name=parts[1])
    if parts[0] == "array" and len(parts) == 2:
        return TypeRef(name=parts[1], wrappers=(WrapperKind.ARRAY,))
    if len(parts) == 1:
        return TypeRef(name=parts[0])
    raise DirectiveSyntaxError(f"unsupported swaggertype '{value}'")


def _is_required(tags: dict[str, str], json_options: list[str], field_type: TypeRef) -> bool:
    rules: list[str] = []
    for key in ("binding", "validate"):
        rules.extend(rule.strip() for rule in tags.get(key, "").split(","))
    if "required" in rules or tags.get("required", "").lower() == "true":
        return True
    if "omitempty" in json_options or "omitempty" in rules:
        return False
    return not field_type.is_pointer


def _apply_value_tags(field: FieldDef, tags: dict[str, str], diagnostics: Diagnostics) -> FieldDef:
    update: dict = {}
    if "example" in tags:
        update["example"] = coerce_literal(tags["example"], field.type)
    if "default" in tags:
        update["default"] = coerce_literal(tags["default"], item_ref(field.type))
    if "enums" in tags:
        item = item_ref(field.type)
        update["enum"] = [coerce_literal(v, item) for v in tags["enums"].split(",") if v.strip()]
    if "format" in tags:
        update["format"] = tags["format"]
    for key, attr, convert in (
        ("minimum", "minimum", float),
        ("maximum", "maximum", float),
        ("minLength", "min_length", int),
        ("maxLength", "max_length", int),
    ):
        if key not in tags:
            continue
        try:
            update[attr] = convert(tags[key])
        except ValueError:
            diagnostics.warn(f"field '{field.name}': invalid {key} value '{tags[key]}'", field.location)
    return field.model_copy(update=update) if update else field
