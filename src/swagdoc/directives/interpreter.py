"""Directive Interpreter: directives to typed fragments.

Two consumers share the dispatch-on-keyword approach:

* :class:`GeneralInfoAccumulator` -- fed every general-info block of the
  entry file, in file order. It owns the only :class:`GeneralInfo` of the
  run plus the server list and the security schemes. Server entries and
  tags pair sequentially (``@server.url`` then ``@server.description``);
  a ``@securityDefinitions.<kind> <name>`` directive opens a scheme that
  collects follow-ups (``@in``, ``@name``, ``@tokenUrl``, ``@scope.x``...)
  until the next one or the end of the block.
* :func:`interpret_operation` -- turns one handler's block into one
  :class:`OperationFragment` per ``@Router``.

Malformed directives never abort interpretation: they are dropped and a
warning with their source location is recorded.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from swagdoc.diagnostics import Diagnostics
from swagdoc.exceptions import DirectiveSyntaxError, StructuralError
from swagdoc.models import (
    CommentBlock,
    Contact,
    Directive,
    DirectiveKind,
    ExternalDocs,
    GeneralFragment,
    GeneralInfo,
    HeaderDef,
    HTTPMethod,
    License,
    OperationFragment,
    ParamDef,
    ParameterLocation,
    ResponseDef,
    SecuritySchemeDef,
    SecuritySchemeKind,
    ServerEntry,
    SourceLocation,
    TagDef,
)
from swagdoc.directives.grammar import (
    parse_header,
    parse_mime_list,
    parse_param,
    parse_request_body,
    parse_response,
    parse_router,
    parse_security,
)
from swagdoc.schema.gotypes import FileContext

logger = logging.getLogger(__name__)

GENERAL_KEYWORDS = frozenset({
    "title", "version", "summary", "description", "termsofservice", "host",
    "basepath", "schemes", "accept", "produce", "security",
    "contact.name", "contact.url", "contact.email",
    "license.name", "license.url", "license.identifier",
    "server.url", "server.description",
    "tag.name", "tag.description", "tag.docs.url", "tag.docs.description",
    "externaldocs.url", "externaldocs.description",
})

SCHEME_FOLLOW_UPS = frozenset({
    "in", "name", "description", "authorizationurl", "tokenurl",
    "refreshurl", "bearerformat", "openidconnecturl",
})

OPERATION_KEYWORDS = frozenset({
    "summary", "description", "id", "tags", "accept", "produce", "param", "requestbody",
    "success", "failure", "response", "header", "router",
    "deprecatedrouter", "security", "deprecated",
})

ROUTER_KEYWORDS = frozenset({"router", "deprecatedrouter"})

_SCHEME_KINDS: dict[str, tuple[SecuritySchemeKind, Optional[str]]] = {
    "apikey": (SecuritySchemeKind.API_KEY, None),
    "basic": (SecuritySchemeKind.BASIC, None),
    "bearer": (SecuritySchemeKind.BEARER, None),
    "jwt": (SecuritySchemeKind.BEARER, "JWT"),
    "oauth2.implicit": (SecuritySchemeKind.OAUTH2_IMPLICIT, None),
    "oauth2.password": (SecuritySchemeKind.OAUTH2_PASSWORD, None),
    "oauth2.application": (SecuritySchemeKind.OAUTH2_CLIENT_CREDENTIALS, None),
    "oauth2.clientcredentials": (SecuritySchemeKind.OAUTH2_CLIENT_CREDENTIALS, None),
    "oauth2.accesscode": (SecuritySchemeKind.OAUTH2_AUTHORIZATION_CODE, None),
    "oauth2.authorizationcode": (SecuritySchemeKind.OAUTH2_AUTHORIZATION_CODE, None),
    "openidconnect": (SecuritySchemeKind.OPENID_CONNECT, None),
}

_API_KEY_LOCATIONS = ("header", "query", "cookie")

_INFO_FIELDS = {
    "title": "title",
    "version": "version",
    "summary": "summary",
    "termsofservice": "terms_of_service",
    "host": "host",
    "basepath": "base_path",
}


def is_router_block(directives: Sequence[Directive]) -> bool:
    return any(d.name in ROUTER_KEYWORDS for d in directives)


def _single_line(directive: Directive) -> str:
    return " ".join(directive.argument.split())


def _paragraphs(directive: Directive) -> str:
    return directive.argument.strip()


class _DiscardedScheme:
    """Placeholder for a scheme whose header was invalid; swallows follow-ups."""


_DISCARDED = _DiscardedScheme()


class GeneralInfoAccumulator:
    """Collects general info, servers and security schemes across blocks.

    Later duplicates of a single-valued directive overwrite earlier ones
    with a warning. A repeated server URL is a
    :class:`~swagdoc.exceptions.StructuralError`. A security scheme name
    defined twice keeps the last definition, with a warning.

    Args:
        diagnostics: Receives every warning.
    """

    def __init__(self, diagnostics: Diagnostics) -> None:
        self._diagnostics = diagnostics
        self._info = GeneralInfo()
        self._servers: list[ServerEntry] = []
        self._schemes: dict[str, SecuritySchemeDef] = {}
        self._seen: dict[str, SourceLocation] = {}
        self._server: Optional[int] = None
        self._tag: Optional[int] = None
        self._scheme: SecuritySchemeDef | _DiscardedScheme | None = None

    def feed(self, directives: Sequence[Directive]) -> None:
        """Interpret one general-info block."""
        self._server = None
        self._tag = None
        self._scheme = None
        for directive in directives:
            try:
                self._dispatch(directive)
            except DirectiveSyntaxError as exc:
                self._diagnostics.warn(f"@{directive.keyword}: {exc}", directive.location)
        self._close_scheme()

    def build(self) -> GeneralFragment:
        return GeneralFragment(
            info=self._info.model_copy(deep=True),
            servers=list(self._servers),
            security_schemes=dict(self._schemes),
        )

    # --- dispatch ---

    def _dispatch(self, directive: Directive) -> None:
        name = directive.name
        if directive.kind is DirectiveKind.UNKNOWN:
            self._diagnostics.warn(f"unknown directive @{directive.keyword}", directive.location)
            return

        if name.startswith("securitydefinitions."):
            self._open_scheme(directive)
            return
        if self._scheme is not None and (name in SCHEME_FOLLOW_UPS or name.startswith("scope.")):
            self._scheme_follow_up(directive)
            return
        if name in SCHEME_FOLLOW_UPS - {"description"} or name.startswith("scope."):
            self._diagnostics.warn(
                f"@{directive.keyword} is only valid after @securityDefinitions", directive.location
            )
            return

        if name in _INFO_FIELDS:
            self._set(_INFO_FIELDS[name], _single_line(directive), directive)
        elif name == "description":
            self._set("description", _paragraphs(directive), directive)
        elif name.startswith("contact."):
            self._set_nested("contact", Contact, name.split(".", 1)[1], directive)
        elif name.startswith("license."):
            self._set_nested("license", License, name.split(".", 1)[1], directive)
        elif name.startswith("externaldocs."):
            self._set_nested("external_docs", ExternalDocs, name.split(".", 1)[1], directive)
        elif name == "schemes":
            schemes = [s.lower() for s in re.split(r"[,\s]+", directive.argument.strip()) if s]
            self._set("schemes", schemes, directive)
        elif name == "accept":
            self._info.consumes.extend(parse_mime_list(directive.argument))
        elif name == "produce":
            self._info.produces.extend(parse_mime_list(directive.argument))
        elif name == "security":
            self._info.security.extend(parse_security(directive.argument))
        elif name == "server.url":
            self._add_server(directive)
        elif name == "server.description":
            self._describe_server(directive)
        elif name.startswith("tag."):
            self._tag_directive(directive)
        else:
            self._diagnostics.warn(
                f"@{directive.keyword} is only valid on a handler with @Router", directive.location
            )

    def _set(self, field: str, value: object, directive: Directive) -> None:
        self._check_overwrite(field, directive)
        setattr(self._info, field, value)

    def _set_nested(self, field: str, model: type, attribute: str, directive: Directive) -> None:
        if attribute not in model.model_fields:
            self._diagnostics.warn(f"unknown directive @{directive.keyword}", directive.location)
            return
        self._check_overwrite(f"{field}.{attribute}", directive)
        current = getattr(self._info, field) or model()
        setattr(current, attribute, _single_line(directive))
        setattr(self._info, field, current)

    def _check_overwrite(self, key: str, directive: Directive) -> None:
        previous = self._seen.get(key)
        if previous is not None:
            self._diagnostics.warn(
                f"@{directive.keyword} overrides the value set at {previous}", directive.location
            )
        self._seen[key] = directive.location

    # --- servers and tags ---

    def _add_server(self, directive: Directive) -> None:
        url = _single_line(directive)
        if not url:
            raise DirectiveSyntaxError("expected a URL")
        for existing in self._servers:
            if existing.url == url:
                locations = [loc for loc in (existing.location, directive.location) if loc is not None]
                raise StructuralError(f"duplicate server URL '{url}'", locations)
        self._servers.append(ServerEntry(url=url, location=directive.location))
        self._server = len(self._servers) - 1

    def _describe_server(self, directive: Directive) -> None:
        if self._server is None:
            self._diagnostics.warn("@server.description without a preceding @server.url", directive.location)
            return
        entry = self._servers[self._server]
        self._servers[self._server] = entry.model_copy(update={"description": _single_line(directive)})

    def _tag_directive(self, directive: Directive) -> None:
        attribute = directive.name.split(".", 1)[1]
        if attribute == "name":
            self._info.tags.append(TagDef(name=_single_line(directive)))
            self._tag = len(self._info.tags) - 1
            return
        if self._tag is None:
            self._diagnostics.warn(f"@{directive.keyword} without a preceding @tag.name", directive.location)
            return
        tag = self._info.tags[self._tag]
        if attribute == "description":
            tag.description = _paragraphs(directive)
        else:
            docs = tag.external_docs or ExternalDocs()
            setattr(docs, attribute.split(".", 1)[1], _single_line(directive))
            tag.external_docs = docs

    # --- security schemes ---

    def _open_scheme(self, directive: Directive) -> None:
        self._close_scheme()
        kind_key = directive.name.split(".", 1)[1]
        entry = _SCHEME_KINDS.get(kind_key)
        name = directive.first_line.split()[0] if directive.first_line else ""
        if entry is None or not name:
            problem = (
                f"unknown security scheme kind '{directive.keyword.split('.', 1)[1]}'"
                if entry is None
                else "security scheme name is missing"
            )
            self._diagnostics.warn(f"@{directive.keyword}: {problem}", directive.location)
            self._scheme = _DISCARDED
            return
        kind, bearer_format = entry
        self._scheme = SecuritySchemeDef(
            name=name,
            kind=kind,
            bearer_format=bearer_format,
            location=directive.location,
        )

    def _scheme_follow_up(self, directive: Directive) -> None:
        scheme = self._scheme
        if not isinstance(scheme, SecuritySchemeDef):
            return
        name = directive.name
        value = _single_line(directive)
        if name.startswith("scope."):
            scheme.scopes[directive.keyword.split(".", 1)[1]] = value
        elif name == "in":
            scheme.location_in = value.lower()
        elif name == "name":
            scheme.parameter_name = value
        elif name == "description":
            scheme.description = _paragraphs(directive)
        elif name == "authorizationurl":
            scheme.authorization_url = value
        elif name == "tokenurl":
            scheme.token_url = value
        elif name == "refreshurl":
            scheme.refresh_url = value
        elif name == "bearerformat":
            scheme.bearer_format = value
        elif name == "openidconnecturl":
            scheme.open_id_connect_url = value

    def _close_scheme(self) -> None:
        scheme = self._scheme
        self._scheme = None
        if not isinstance(scheme, SecuritySchemeDef):
            return
        missing = _missing_scheme_fields(scheme)
        if missing:
            self._diagnostics.warn(
                f"security scheme '{scheme.name}' dropped: missing {', '.join(missing)}",
                scheme.location,
            )
            return
        previous = self._schemes.get(scheme.name)
        if previous is not None:
            change = (
                f"from {previous.kind.value} to {scheme.kind.value}"
                if previous.kind is not scheme.kind
                else "with the same kind"
            )
            self._diagnostics.warn(
                f"security scheme '{scheme.name}' redefined {change}; "
                f"the definition at {previous.location} is replaced",
                scheme.location,
            )
        self._schemes[scheme.name] = scheme


def _missing_scheme_fields(scheme: SecuritySchemeDef) -> list[str]:
    missing: list[str] = []
    kind = scheme.kind
    if kind is SecuritySchemeKind.API_KEY:
        if scheme.location_in not in _API_KEY_LOCATIONS:
            missing.append("@in (header, query or cookie)")
        if not scheme.parameter_name:
            missing.append("@name")
    if kind in (SecuritySchemeKind.OAUTH2_IMPLICIT, SecuritySchemeKind.OAUTH2_AUTHORIZATION_CODE):
        if not scheme.authorization_url:
            missing.append("@authorizationUrl")
    if kind in (
        SecuritySchemeKind.OAUTH2_PASSWORD,
        SecuritySchemeKind.OAUTH2_CLIENT_CREDENTIALS,
        SecuritySchemeKind.OAUTH2_AUTHORIZATION_CODE,
    ):
        if not scheme.token_url:
            missing.append("@tokenUrl")
    if kind is SecuritySchemeKind.OPENID_CONNECT and not scheme.open_id_connect_url:
        missing.append("@openIdConnectUrl")
    return missing


# --- Operations ---


def default_operation_id(method: HTTPMethod, path: str) -> str:
    """``get`` + ``/users/{id}`` gives ``get_users_id``."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", path).strip("_")
    return f"{method.value}_{slug}" if slug else method.value


def interpret_operation(
    block: CommentBlock,
    directives: Sequence[Directive],
    context: FileContext,
    diagnostics: Diagnostics,
) -> list[OperationFragment]:
    """Build the operations declared by one handler's comment block.

    Args:
        block: The block; its declaration names the handler.
        directives: The block's tokenized directives.
        context: Naming scope of the file, for type references.
        diagnostics: Receives warnings for dropped directives.

    Returns:
        One fragment per ``@Router``/``@DeprecatedRouter``, in directive
        order. Empty when the block declares no route.
    """
    builder = _OperationBuilder(block, context, diagnostics)
    for directive in directives:
        try:
            builder.dispatch(directive)
        except DirectiveSyntaxError as exc:
            diagnostics.warn(f"@{directive.keyword} dropped: {exc}", directive.location)
    return builder.build()


class _OperationBuilder:
    def __init__(self, block: CommentBlock, context: FileContext, diagnostics: Diagnostics) -> None:
        self._block = block
        self._context = context
        self._diagnostics = diagnostics
        self.summary: Optional[str] = None
        self.descriptions: list[str] = []
        self.operation_id: Optional[str] = None
        self.tags: list[str] = []
        self.consumes: list[str] = []
        self.produces: list[str] = []
        self.params: list[ParamDef] = []
        self.responses: dict[str, list[ResponseDef]] = {}
        self.headers: list[tuple[Optional[list[str]], HeaderDef, SourceLocation]] = []
        self.routes: list[tuple[str, HTTPMethod, bool, SourceLocation]] = []
        self.security: Optional[list[dict[str, list[str]]]] = None
        self.deprecated = False
        self.operation_directives = 0

    def dispatch(self, directive: Directive) -> None:
        name = directive.name
        if directive.kind is DirectiveKind.UNKNOWN:
            self._diagnostics.warn(f"unknown directive @{directive.keyword}", directive.location)
            return
        if name not in OPERATION_KEYWORDS:
            self._diagnostics.warn(
                f"@{directive.keyword} is only valid in the general API info", directive.location
            )
            return
        self.operation_directives += 1

        if name == "summary":
            self.summary = _single_line(directive)
        elif name == "description":
            self.descriptions.append(_paragraphs(directive))
        elif name == "id":
            self.operation_id = _single_line(directive)
        elif name == "tags":
            self.tags.extend(t.strip() for t in directive.argument.split(",") if t.strip())
        elif name == "accept":
            self.consumes.extend(parse_mime_list(directive.argument))
        elif name == "produce":
            self.produces.extend(parse_mime_list(directive.argument))
        elif name == "param":
            self._add_param(directive)
        elif name == "requestbody":
            self._append_param(parse_request_body(directive.argument, self._context, directive.location))
        elif name in ("success", "failure", "response"):
            response = parse_response(directive.argument, self._context, directive.location)
            self.responses.setdefault(response.code, []).append(response)
        elif name == "header":
            codes, header = parse_header(directive.argument)
            self.headers.append((codes, header, directive.location))
        elif name in ROUTER_KEYWORDS:
            path, method = parse_router(directive.argument)
            self.routes.append((path, method, name == "deprecatedrouter", directive.location))
        elif name == "security":
            self.security = (self.security or []) + parse_security(directive.argument)
        elif name == "deprecated":
            self.deprecated = True

    def _add_param(self, directive: Directive) -> None:
        def warn(message: str) -> None:
            self._diagnostics.warn(message, directive.location)

        param = parse_param(directive.argument, self._context, directive.location, warn)
        if param.location is ParameterLocation.PATH and not param.required:
            warn(f"path parameter '{param.name}' is always required")
            param = param.model_copy(update={"required": True})
        self._append_param(param)

    def _append_param(self, param: ParamDef) -> None:
        if param.location is ParameterLocation.BODY and any(
            p.location is ParameterLocation.BODY for p in self.params
        ):
            raise DirectiveSyntaxError(f"second body parameter '{param.name}'; only one request body is allowed")
        for existing in self.params:
            if existing.name == param.name and existing.location is param.location:
                raise DirectiveSyntaxError(
                    f"parameter '{param.name}' in {param.location.value} is already declared"
                )
        self.params.append(param)

    def _attach_headers(self) -> None:
        for codes, header, location in self.headers:
            targets = list(self.responses) if codes is None else codes
            for code in targets:
                responses = self.responses.get(code)
                if not responses:
                    self._diagnostics.warn(
                        f"@Header {header.name}: no response declared for status {code}", location
                    )
                    continue
                for response in responses:
                    response.headers[header.name] = header

    def build(self) -> list[OperationFragment]:
        if not self.routes:
            if self.operation_directives:
                self._diagnostics.warn(
                    f"directives on '{self._declaration_name()}' ignored: no @Router",
                    self._block.location,
                )
            return []

        self._attach_headers()
        if not self.responses:
            self._diagnostics.warn(
                f"'{self._declaration_name()}' declares no responses", self._block.location
            )

        description = "\n\n".join(d for d in self.descriptions if d) or None
        fragments: list[OperationFragment] = []
        for index, (path, method, deprecated, location) in enumerate(self.routes):
            operation_id = self.operation_id if index == 0 and self.operation_id else None
            fragments.append(
                OperationFragment(
                    method=method,
                    path=path,
                    operation_id=operation_id or default_operation_id(method, path),
                    summary=self.summary,
                    description=description,
                    tags=list(self.tags),
                    consumes=list(self.consumes),
                    produces=list(self.produces),
                    parameters=list(self.params),
                    responses={code: list(items) for code, items in self.responses.items()},
                    security=None if self.security is None else list(self.security),
                    deprecated=self.deprecated or deprecated,
                    handler=self._declaration_name(),
                    location=location,
                )
            )
        logger.debug("interpreted %d operation(s) for %s", len(fragments), self._declaration_name())
        return fragments

    def _declaration_name(self) -> str:
        declaration = self._block.declaration
        return declaration.name if declaration is not None else f"block at {self._block.location}"
