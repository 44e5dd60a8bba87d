"""Positional sub-grammars of the directive dialect.

Each parser takes the raw argument string of one directive and returns a
typed value, or raises :class:`~swagdoc.exceptions.DirectiveSyntaxError`
so that the interpreter can drop the directive with a warning. The
grammars are::

    @Router      /path/{id} [get]
    @Param       name in type required "description" [Attr(value) ...]
    @RequestBody {object|array Type} ["description"]
    @RequestBody {object|array} Type ["description"]
    @Success     code [{object|array|primitive} Type] ["description"] [{example=JSON}]
    @Header      code[,code...]|all {type} Name ["description"]
    @Security    Name[scope, ...] [&& Other] [|| Alternative]

``in`` is one of ``path``, ``query``, ``header``, ``cookie``, ``body`` or
``formData``. A param ``type`` may be preceded by a braced ``{object}`` or
``{array}`` marker.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

from swagdoc.exceptions import DirectiveSyntaxError
from swagdoc.models import (
    HeaderDef,
    HTTPMethod,
    ParamDef,
    ParameterLocation,
    ResponseDef,
    SourceLocation,
    TypeRef,
    WrapperKind,
)
from swagdoc.schema.gotypes import (
    FileContext,
    coerce_literal,
    item_ref,
    parse_type_expr,
    split_top_level,
)

Warn = Callable[[str], None]

_ROUTER_RE = re.compile(r"^(?P<path>\S+)\s+\[(?P<method>\w+)\]$")
_ATTRIBUTE_RE = re.compile(r"^(?P<name>\w+)\((?P<value>.*)\)$", re.DOTALL)
_STATUS_RE = re.compile(r"^(?:[1-5]\d\d|[1-5]XX|default)$", re.IGNORECASE)
_EXAMPLE_SUFFIX_RE = re.compile(r"(?:^|\s)\{example=(?P<json>.*)\}\s*$", re.DOTALL)
_SECURITY_TERM_RE = re.compile(r"^(?P<name>[\w.-]+)\s*(?:\[(?P<scopes>[^\]]*)\])?\s*(?P<tail>.*)$")

_PARAM_LOCATIONS = {loc.value.lower(): loc for loc in ParameterLocation}

_PRIMITIVE_MARKERS = {
    "string": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "file": "file",
}

MIME_ALIASES: dict[str, str] = {
    "json": "application/json",
    "xml": "text/xml",
    "plain": "text/plain",
    "text": "text/plain",
    "html": "text/html",
    "mpfd": "multipart/form-data",
    "multipart": "multipart/form-data",
    "form": "multipart/form-data",
    "x-www-form-urlencoded": "application/x-www-form-urlencoded",
    "urlencoded": "application/x-www-form-urlencoded",
    "json-api": "application/vnd.api+json",
    "json-stream": "application/x-json-stream",
    "octet-stream": "application/octet-stream",
    "binary": "application/octet-stream",
    "png": "image/png",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "event-stream": "text/event-stream",
}
"""Short media-type names accepted by ``@Accept`` and ``@Produce``."""


# --- Tokens ---


def split_arguments(text: str) -> list[str]:
    """Split on whitespace outside double quotes and brackets.

    Quoted tokens keep their quotes so callers can tell a description from
    a bare word; see :func:`unquote`.

    Example::

        >>> split_arguments('id path int true "User ID" Enums(1, 2)')
        ['id', 'path', 'int', 'true', '"User ID"', 'Enums(1, 2)']
    """
    tokens: list[str] = []
    current = ""
    depth = 0
    in_quote = False
    index = 0
    while index < len(text):
        char = text[index]
        if in_quote:
            current += char
            if char == "\\" and index + 1 < len(text):
                current += text[index + 1]
                index += 2
                continue
            if char == '"':
                in_quote = False
        elif char == '"':
            in_quote = True
            current += char
        elif char in "([{":
            depth += 1
            current += char
        elif char in ")]}":
            depth = max(0, depth - 1)
            current += char
        elif char.isspace() and depth == 0:
            if current:
                tokens.append(current)
            current = ""
        else:
            current += char
        index += 1
    if in_quote:
        raise DirectiveSyntaxError("unterminated quoted string")
    if current:
        tokens.append(current)
    return tokens


def unquote(token: str) -> str:
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return token[1:-1].replace('\\"', '"')
    return token


def _collapse(argument: str) -> str:
    return " ".join(argument.split())


def _take_description(tokens: list[str]) -> Optional[str]:
    """Consume a quoted description, or bare words up to the first attribute."""
    if not tokens:
        return None
    if tokens[0].startswith('"'):
        return unquote(tokens.pop(0)) or None
    words: list[str] = []
    while tokens and not _ATTRIBUTE_RE.match(tokens[0]):
        words.append(tokens.pop(0))
    return " ".join(words) or None


# --- Media types ---


def normalize_mime(value: str) -> str:
    """Expand a media-type alias; values containing ``/`` pass through."""
    value = value.strip()
    if "/" in value:
        return value
    return MIME_ALIASES.get(value.lower(), f"application/{value.lower()}")


def parse_mime_list(argument: str) -> list[str]:
    parts = [p for p in re.split(r"[,\s]+", argument.strip()) if p]
    if not parts:
        raise DirectiveSyntaxError("expected at least one media type")
    return [normalize_mime(p) for p in parts]


# --- @Router ---


def parse_router(argument: str) -> tuple[str, HTTPMethod]:
    """Parse ``/path [method]``.

    Raises:
        DirectiveSyntaxError: If the path does not start with ``/`` or the
            method is not an HTTP method.
    """
    match = _ROUTER_RE.match(_collapse(argument))
    if not match:
        raise DirectiveSyntaxError(f"@Router expects '/path [method]', got '{argument.strip()}'")
    path = match.group("path")
    if not path.startswith("/"):
        raise DirectiveSyntaxError(f"route '{path}' must start with '/'")
    if path.count("{") != path.count("}"):
        raise DirectiveSyntaxError(f"unbalanced placeholder braces in route '{path}'")
    method = match.group("method").lower()
    try:
        return path, HTTPMethod(method)
    except ValueError:
        raise DirectiveSyntaxError(f"unknown HTTP method '{method}'") from None


# --- @Param ---


def parse_param(
    argument: str,
    context: FileContext,
    location: Optional[SourceLocation] = None,
    warn: Optional[Warn] = None,
) -> ParamDef:
    """Parse a ``@Param`` argument.

    Args:
        argument: Raw directive argument.
        context: Scope used to qualify the parameter type.
        location: Recorded as the parameter's source.
        warn: Receives non-fatal problems (unknown or invalid attributes).

    Raises:
        DirectiveSyntaxError: When a positional field is missing or invalid.
    """
    tokens = split_arguments(_collapse(argument))
    if len(tokens) < 4:
        raise DirectiveSyntaxError(
            '@Param expects: name in type required "description"'
        )
    name = tokens.pop(0)
    location_token = tokens.pop(0)
    param_location = _PARAM_LOCATIONS.get(location_token.lower())
    if param_location is None:
        raise DirectiveSyntaxError(f"unknown parameter location '{location_token}'")

    type_ref = _parse_marked_type(tokens, context, ("object", "array"))
    if not tokens:
        raise DirectiveSyntaxError(f"@Param '{name}' is missing the required flag")
    required_token = tokens.pop(0).lower()
    if required_token not in ("true", "false"):
        raise DirectiveSyntaxError(f"required flag must be true or false, got '{required_token}'")

    param = ParamDef(
        name=name,
        location=param_location,
        type=type_ref,
        required=required_token == "true",
        description=_take_description(tokens),
        source=location,
    )
    return _apply_attributes(param, tokens, warn)


def _parse_marked_type(
    tokens: list[str],
    context: FileContext,
    markers: tuple[str, ...],
) -> TypeRef:
    if not tokens:
        raise DirectiveSyntaxError("missing type")
    token = tokens.pop(0)
    if not (token.startswith("{") and token.endswith("}")):
        return parse_type_expr(token, context)
    marker = token[1:-1].strip().lower()
    if marker not in markers:
        raise DirectiveSyntaxError(f"unknown type marker '{token}'")
    if not tokens or tokens[0].startswith('"'):
        raise DirectiveSyntaxError(f"expected a type after '{token}'")
    type_ref = parse_type_expr(tokens.pop(0), context)
    if marker == "array":
        type_ref = type_ref.wrap(WrapperKind.ARRAY)
    return type_ref


# --- @RequestBody ---


def parse_request_body(
    argument: str,
    context: FileContext,
    location: Optional[SourceLocation] = None,
) -> ParamDef:
    """Parse a ``@RequestBody`` argument into a required ``body`` parameter.

    Both ``{object model.User} "The user"`` and ``{object} model.User "The
    user"`` are accepted; a bare ``{model.User}`` means ``{object}``.
    """
    tokens = split_arguments(_collapse(argument))
    if not tokens or not (tokens[0].startswith("{") and tokens[0].endswith("}")):
        raise DirectiveSyntaxError('@RequestBody expects: {object} Type ["description"]')
    words = tokens[0][1:-1].split()
    if not words or len(words) > 2:
        raise DirectiveSyntaxError(f"invalid request body type '{tokens[0]}'")
    if len(words) == 2:
        tokens[0:1] = ["{" + words[0] + "}", words[1]]
    elif words[0].lower() not in ("object", "array"):
        tokens[0:1] = ["{object}", words[0]]

    type_ref = _parse_marked_type(tokens, context, ("object", "array"))
    description = _take_description(tokens)
    if tokens:
        raise DirectiveSyntaxError(f"unexpected trailing text '{' '.join(tokens)}'")
    return ParamDef(
        name="body",
        location=ParameterLocation.BODY,
        type=type_ref,
        required=True,
        description=description,
        source=location,
    )


def _apply_attributes(param: ParamDef, tokens: list[str], warn: Optional[Warn]) -> ParamDef:
    update: dict[str, Any] = {}
    item = item_ref(param.type)
    for token in tokens:
        match = _ATTRIBUTE_RE.match(token)
        if not match:
            _emit(warn, f"@Param '{param.name}': ignoring unexpected token '{token}'")
            continue
        key = match.group("name").lower()
        value = match.group("value").strip()
        try:
            if key == "enums":
                update["enum"] = [coerce_literal(v, item) for v in split_top_level(value, ",") if v.strip()]
            elif key == "default":
                update["default"] = coerce_literal(value, item)
            elif key == "example":
                update["example"] = coerce_literal(value, param.type)
            elif key == "format":
                update["format"] = value
            elif key in ("minimum", "maximum"):
                update[key] = float(value)
            elif key in ("minlength", "maxlength"):
                update["min_length" if key == "minlength" else "max_length"] = int(value)
            else:
                _emit(warn, f"@Param '{param.name}': unknown attribute '{match.group('name')}'")
        except ValueError:
            _emit(warn, f"@Param '{param.name}': invalid value for {match.group('name')}: '{value}'")
    return param.model_copy(update=update) if update else param


def _emit(warn: Optional[Warn], message: str) -> None:
    if warn is not None:
        warn(message)


# --- @Success / @Failure / @Response ---


def parse_response(
    argument: str,
    context: FileContext,
    location: Optional[SourceLocation] = None,
) -> ResponseDef:
    """Parse ``code [{marker} Type] ["description"]``.

    ``{object}`` and ``{array}`` require a type; primitive markers such as
    ``{string}`` take an optional type word (``{string} string``). A
    trailing ``{example=JSON}`` segment becomes the response example.
    """
    example: Any = None
    match = _EXAMPLE_SUFFIX_RE.search(argument)
    if match:
        try:
            example = json.loads(match.group("json"))
        except json.JSONDecodeError as exc:
            raise DirectiveSyntaxError(f"invalid response example: {exc.msg}") from exc
        argument = argument[: match.start()]

    tokens = split_arguments(_collapse(argument))
    if not tokens:
        raise DirectiveSyntaxError("response directive expects a status code")
    code = tokens.pop(0)
    if not _STATUS_RE.match(code):
        raise DirectiveSyntaxError(f"invalid status code '{code}'")
    code = code.lower() if code.lower() == "default" else code.upper()

    type_ref: Optional[TypeRef] = None
    if tokens and tokens[0].startswith("{") and tokens[0].endswith("}"):
        marker = tokens[0][1:-1].strip().lower()
        if marker in _PRIMITIVE_MARKERS:
            tokens.pop(0)
            type_ref = TypeRef(name=_PRIMITIVE_MARKERS[marker])
            if tokens and not tokens[0].startswith('"'):
                tokens.pop(0)
        else:
            type_ref = _parse_marked_type(tokens, context, ("object", "array"))
    elif tokens and not tokens[0].startswith('"'):
        raise DirectiveSyntaxError(
            f"expected '{{object}}', '{{array}}' or a quoted description after {code}, got '{tokens[0]}'"
        )

    description = _take_description(tokens)
    if tokens:
        raise DirectiveSyntaxError(f"unexpected trailing text '{' '.join(tokens)}'")
    return ResponseDef(code=code, type=type_ref, description=description, example=example, source=location)


# --- @Header ---


def parse_header(argument: str) -> tuple[Optional[list[str]], HeaderDef]:
    """Parse ``codes {type} Name ["description"]``.

    Returns:
        ``(codes, header)`` where ``codes`` is ``None`` for ``all``.
    """
    tokens = split_arguments(_collapse(argument))
    if len(tokens) < 3:
        raise DirectiveSyntaxError('@Header expects: code {type} Name "description"')
    codes_token, marker_token, name = tokens[0], tokens[1], tokens[2]

    codes: Optional[list[str]] = None
    if codes_token.lower() != "all":
        codes = [c.strip() for c in codes_token.split(",") if c.strip()]
        for code in codes:
            if not _STATUS_RE.match(code):
                raise DirectiveSyntaxError(f"invalid status code '{code}'")

    if not (marker_token.startswith("{") and marker_token.endswith("}")):
        raise DirectiveSyntaxError(f"expected a braced header type, got '{marker_token}'")
    marker = marker_token[1:-1].strip().lower()
    if marker not in _PRIMITIVE_MARKERS:
        raise DirectiveSyntaxError(f"unsupported header type '{marker_token}'")

    description = _take_description(tokens[3:])
    return codes, HeaderDef(name=name, type=TypeRef(name=_PRIMITIVE_MARKERS[marker]), description=description)


# --- @Security ---


def parse_security(argument: str) -> list[dict[str, list[str]]]:
    """Parse a security requirement expression.

    ``||`` separates alternative requirements, ``&&`` joins schemes that
    must all be satisfied. Scopes go in brackets or follow the name.

    Example::

        >>> parse_security("OAuth2[read, write] || ApiKey")
        [{'OAuth2': ['read', 'write']}, {'ApiKey': []}]
    """
    alternatives: list[dict[str, list[str]]] = []
    for alternative in _collapse(argument).split("||"):
        requirement: dict[str, list[str]] = {}
        for term in alternative.split("&&"):
            term = term.strip()
            match = _SECURITY_TERM_RE.match(term)
            if not term or not match:
                raise DirectiveSyntaxError(f"invalid security requirement '{argument.strip()}'")
            scope_text = match.group("scopes") if match.group("scopes") is not None else match.group("tail")
            requirement[match.group("name")] = [s for s in re.split(r"[,\s]+", scope_text) if s]
        alternatives.append(requirement)
    return alternatives
