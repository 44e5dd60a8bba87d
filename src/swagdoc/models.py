"""Canonical Pydantic models shared across all swagdoc modules.

This is the single source of truth for data shapes in the project. Every
pipeline stage imports from here rather than defining its own models. The
models fall into five groups:

**Configuration** -- one generation run:
    :class:`OutputKind`, :class:`OpenAPIVersion`, :class:`GenerateConfig`.

**Scanning** -- produced by :mod:`swagdoc.scanner`:
    :class:`SourceLocation`, :class:`Declaration`, :class:`CommentBlock`,
    :class:`Directive`, and the diagnostic records :class:`Diagnostic`.

**Free-standing fragments** -- produced from the general-info entry file:
    :class:`GeneralInfo` (with :class:`Contact`, :class:`License`,
    :class:`TagDef`, :class:`ExternalDocs`), :class:`ServerEntry`,
    :class:`SecuritySchemeDef`, gathered in :class:`GeneralFragment`.

**Types and schemas** -- the Type Table and Schema Resolver:
    :class:`TypeRef`, :class:`FieldDef`, :class:`StructDef`,
    :class:`SchemaNode`.

**Operations and the document** -- the Directive Interpreter and the
Document Assembler:
    :class:`ParamDef`, :class:`ResponseDef`, :class:`OperationFragment`,
    :class:`Document`.

All models use Pydantic v2. Values that must not change once produced
(locations, directives, type references, the assembled document) are
declared with ``frozen=True``.
"""

from __future__ import annotations

import enum
import os
import re
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class OutputKind(str, enum.Enum):
    """Output kinds accepted by ``--output-types``.

    Only ``json`` and ``yaml`` are produced; ``go`` and ``ui`` are accepted
    for command-line compatibility and skipped with a warning.
    """

    GO = "go"
    JSON = "json"
    YAML = "yaml"
    UI = "ui"


class OpenAPIVersion(str, enum.Enum):
    """Target OpenAPI document versions."""

    V3_0_0 = "3.0.0"
    V3_1_0 = "3.1.0"
    V3_1_1 = "3.1.1"

    @property
    def is_31(self) -> bool:
        """Whether this is a 3.1.x version (JSON Schema 2020-12 dialect)."""
        return self is not OpenAPIVersion.V3_0_0


def _default_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


class GenerateConfig(BaseModel):
    """Effective settings for one generation run.

    Built by :func:`swagdoc.config.resolve_config` from defaults, the
    project ``swagdoc.json``, ``SWAGDOC_*`` environment variables and CLI
    flags, in increasing order of precedence.

    Example::

        GenerateConfig(
            search_dirs=["./"],
            exclude_dirs=["vendor"],
            general_info="cmd/api/main.go",
            output_types=[OutputKind.JSON],
        )
    """

    search_dirs: list[str] = Field(
        default_factory=lambda: ["./"],
        description="Root directories to scan for Go sources.",
    )
    exclude_dirs: list[str] = Field(
        default_factory=list,
        description="Directory names pruned at any depth (exact segment match).",
    )
    general_info: str = Field(
        default="main.go",
        description="File holding the general API annotations.",
    )
    output_dir: str = Field(default="./docs", description="Directory for generated files.")
    output_types: list[OutputKind] = Field(
        default_factory=lambda: [OutputKind.JSON, OutputKind.YAML],
        description="Which files to write.",
    )
    openapi_version: OpenAPIVersion = Field(
        default=OpenAPIVersion.V3_1_1,
        description="Target OpenAPI version.",
    )
    max_file_size_mb: float = Field(
        default=5,
        gt=0,
        description="Serialized size above which output is split into chunks.",
    )
    workers: int = Field(
        default_factory=_default_workers,
        ge=1,
        description="Size of the per-file worker pool.",
    )
    respect_gitignore: bool = Field(
        default=True,
        description="Skip paths matched by the search root's .gitignore.",
    )


# --- Source locations and diagnostics ---


class SourceLocation(BaseModel):
    """A ``file:line`` position in the scanned tree."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


class Severity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"


class DiagnosticCategory(str, enum.Enum):
    """Error taxonomy shared by warnings and fatal errors."""

    SYNTAX = "syntax"
    STRUCTURAL = "structural"
    RESOLUTION = "resolution"
    CONFIGURATION = "configuration"


class Diagnostic(BaseModel):
    """One recorded warning or error, with its source position when known."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Severity.WARNING
    category: DiagnosticCategory = DiagnosticCategory.SYNTAX
    message: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.location}: {self.message}"


# --- Scanning ---


class DeclarationKind(str, enum.Enum):
    FUNC = "func"
    TYPE = "type"


class Declaration(BaseModel):
    """A top-level Go declaration a comment block can be attached to.

    Methods are named ``Receiver.Method``.
    """

    model_config = ConfigDict(frozen=True)

    kind: DeclarationKind
    name: str
    line: int


class CommentBlock(BaseModel):
    """A contiguous run of column-0 ``//`` lines.

    ``lines`` holds the comment text with the ``//`` prefix removed, one
    entry per source line, starting at ``start_line``. ``declaration`` is
    the declaration on the line directly below the block, or ``None`` for a
    free-standing block.
    """

    lines: list[str]
    file: str
    start_line: int
    declaration: Optional[Declaration] = None

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(file=self.file, line=self.start_line)

    @property
    def is_free_standing(self) -> bool:
        return self.declaration is None


class DirectiveKind(str, enum.Enum):
    """Whether a directive keyword belongs to the supported dialect."""

    KNOWN = "known"
    UNKNOWN = "unknown"


class Directive(BaseModel):
    """A single ``@keyword argument`` instruction.

    ``keyword`` keeps the spelling used in the source; :attr:`name` is the
    case-folded form used for dispatch.
    """

    model_config = ConfigDict(frozen=True)

    keyword: str
    argument: str = ""
    location: SourceLocation
    kind: DirectiveKind = DirectiveKind.KNOWN

    @property
    def name(self) -> str:
        return self.keyword.lower()

    @property
    def first_line(self) -> str:
        """The argument without continuation lines."""
        return self.argument.split("\n", 1)[0].strip()


# --- Free-standing fragments ---


class Contact(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None


class License(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    identifier: Optional[str] = Field(default=None, description="SPDX identifier (3.1 only).")


class ExternalDocs(BaseModel):
    url: Optional[str] = None
    description: Optional[str] = None


class TagDef(BaseModel):
    """A document-level tag declared with ``@tag.name``."""

    name: str
    description: Optional[str] = None
    external_docs: Optional[ExternalDocs] = None


class GeneralInfo(BaseModel):
    """API-wide metadata from the general-info entry file.

    At most one instance exists per run. ``title`` and ``version`` are
    required by the assembler; everything else is optional.
    """

    title: Optional[str] = None
    version: Optional[str] = None
    summary: Optional[str] = Field(default=None, description="Short summary (3.1 only).")
    description: Optional[str] = None
    terms_of_service: Optional[str] = None
    contact: Optional[Contact] = None
    license: Optional[License] = None
    host: Optional[str] = None
    base_path: Optional[str] = None
    schemes: list[str] = Field(default_factory=list)
    consumes: list[str] = Field(
        default_factory=list,
        description="Default request media types for operations without @Accept.",
    )
    produces: list[str] = Field(
        default_factory=list,
        description="Default response media types for operations without @Produce.",
    )
    tags: list[TagDef] = Field(default_factory=list)
    external_docs: Optional[ExternalDocs] = None
    security: list[dict[str, list[str]]] = Field(
        default_factory=list,
        description="Global security requirements (alternatives).",
    )


class ServerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    description: Optional[str] = None
    location: Optional[SourceLocation] = None


class SecuritySchemeKind(str, enum.Enum):
    """Security scheme variants, keyed by their canonical directive spelling."""

    API_KEY = "apiKey"
    BASIC = "basic"
    BEARER = "bearer"
    OAUTH2_IMPLICIT = "oauth2.implicit"
    OAUTH2_PASSWORD = "oauth2.password"
    OAUTH2_CLIENT_CREDENTIALS = "oauth2.clientCredentials"
    OAUTH2_AUTHORIZATION_CODE = "oauth2.authorizationCode"
    OPENID_CONNECT = "openIdConnect"

    @property
    def is_oauth2(self) -> bool:
        return self.value.startswith("oauth2.")


class SecuritySchemeDef(BaseModel):
    """A named security scheme from a ``@securityDefinitions.<kind>`` directive.

    Only the attributes relevant to :attr:`kind` are populated. OAuth2
    variants carry the URLs their flow requires and a scope map.
    """

    name: str
    kind: SecuritySchemeKind
    description: Optional[str] = None
    location_in: Optional[str] = Field(default=None, description="apiKey location: header, query or cookie.")
    parameter_name: Optional[str] = Field(default=None, description="apiKey header/query/cookie name.")
    bearer_format: Optional[str] = None
    authorization_url: Optional[str] = None
    token_url: Optional[str] = None
    refresh_url: Optional[str] = None
    open_id_connect_url: Optional[str] = None
    scopes: dict[str, str] = Field(default_factory=dict)
    location: Optional[SourceLocation] = None


class GeneralFragment(BaseModel):
    """Everything the free-standing accumulator gathered from the entry file."""

    info: GeneralInfo = Field(default_factory=GeneralInfo)
    servers: list[ServerEntry] = Field(default_factory=list)
    security_schemes: dict[str, SecuritySchemeDef] = Field(default_factory=dict)


# --- Types and schemas ---


class WrapperKind(str, enum.Enum):
    ARRAY = "array"
    MAP = "map"
    POINTER = "pointer"


class TypeRef(BaseModel):
    """A reference to a data type.

    ``name`` is a fully-qualified type name (``model.User``) or a primitive
    keyword (``string``, ``int64``, ``time.Time``). ``wrappers`` lists the
    array/map/pointer wrappers from the outside in, so ``[]*model.User`` is
    ``TypeRef(name="model.User", wrappers=(ARRAY, POINTER))``. A braced
    ``{array}`` marker in a directive contributes an outer ``ARRAY``.

    ``overrides`` carries ``Envelope{data=model.User}`` style property
    replacements. Equality is structural.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    wrappers: tuple[WrapperKind, ...] = ()
    overrides: tuple[tuple[str, TypeRef], ...] = ()

    @property
    def is_pointer(self) -> bool:
        return bool(self.wrappers) and self.wrappers[0] is WrapperKind.POINTER

    def strip_pointers(self) -> TypeRef:
        """Drop leading pointer wrappers (``*T`` and ``**T`` both become ``T``)."""
        wrappers = self.wrappers
        while wrappers and wrappers[0] is WrapperKind.POINTER:
            wrappers = wrappers[1:]
        return self.model_copy(update={"wrappers": wrappers})

    def wrap(self, kind: WrapperKind) -> TypeRef:
        return self.model_copy(update={"wrappers": (kind,) + self.wrappers})

    def named_refs(self) -> Iterator[TypeRef]:
        """Yield this reference and every override target, unwrapped."""
        yield TypeRef(name=self.name)
        for _, target in self.overrides:
            yield from target.named_refs()

    def __str__(self) -> str:
        prefix = ""
        for kind in self.wrappers:
            prefix += {"array": "[]", "map": "map[string]", "pointer": "*"}[kind.value]
        text = prefix + self.name
        if self.overrides:
            text += "{" + ",".join(f"{k}={v}" for k, v in self.overrides) + "}"
        return text


class FieldDef(BaseModel):
    """One struct field after tag parsing.

    ``name`` is the Go identifier; the JSON property name is
    :attr:`property_name`. ``embedded`` fields have their type's members
    spliced into the owner by the resolver.
    """

    name: str
    type: TypeRef
    json_name: Optional[str] = None
    example: Any = None
    required: bool = False
    embedded: bool = False
    description: Optional[str] = None
    default: Any = None
    enum: list[Any] = Field(default_factory=list)
    format: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    location: Optional[SourceLocation] = None

    @property
    def property_name(self) -> str:
        return self.json_name or self.name


class StructDef(BaseModel):
    """A declared data type, indexed by :attr:`name` in the Type Table.

    Struct types carry ``fields``; named non-struct types (``type Status
    string``) carry ``underlying`` instead. Embedded types are referenced by
    name only, never included structurally.
    """

    name: str
    package: str
    fields: list[FieldDef] = Field(default_factory=list)
    underlying: Optional[TypeRef] = None
    description: Optional[str] = None
    location: Optional[SourceLocation] = None

    @property
    def embedded(self) -> list[str]:
        """Qualified names of embedded types, in declaration order."""
        return [f.type.name for f in self.fields if f.embedded]


class SchemaNode(BaseModel):
    """A resolved schema fragment.

    A node is either a named reference (``ref`` set), or a structural
    schema: object (``properties``), array (``items``), map
    (``additional_properties``), primitive (``type``/``format``),
    composition (``all_of``/``any_of``) or free-form (nothing set).
    ``binary`` marks file payloads, whose representation differs between
    3.0 and 3.1.
    """

    ref: Optional[str] = None
    type: Optional[str] = None
    format: Optional[str] = None
    binary: bool = False
    items: Optional[SchemaNode] = None
    properties: dict[str, SchemaNode] = Field(default_factory=dict)
    additional_properties: Optional[SchemaNode] = None
    required: list[str] = Field(default_factory=list)
    all_of: list[SchemaNode] = Field(default_factory=list)
    any_of: list[SchemaNode] = Field(default_factory=list)
    description: Optional[str] = None
    example: Any = None
    default: Any = None
    enum: list[Any] = Field(default_factory=list)
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    @property
    def is_ref(self) -> bool:
        return self.ref is not None

    def iter_refs(self) -> Iterator[str]:
        """Yield every component name referenced from this node, depth first."""
        if self.ref is not None:
            yield self.ref
        if self.items is not None:
            yield from self.items.iter_refs()
        if self.additional_properties is not None:
            yield from self.additional_properties.iter_refs()
        for child in self.properties.values():
            yield from child.iter_refs()
        for child in self.all_of:
            yield from child.iter_refs()
        for child in self.any_of:
            yield from child.iter_refs()


# --- Operations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods in the order they are emitted within a path item."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"
    BODY = "body"
    FORM_DATA = "formData"


class ParamDef(BaseModel):
    """A parsed ``@Param`` directive."""

    name: str
    location: ParameterLocation
    type: TypeRef
    required: bool = False
    description: Optional[str] = None
    enum: list[Any] = Field(default_factory=list)
    default: Any = None
    format: Optional[str] = None
    example: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    source: Optional[SourceLocation] = None


class HeaderDef(BaseModel):
    name: str
    type: TypeRef
    description: Optional[str] = None


class ResponseDef(BaseModel):
    """A parsed ``@Success``/``@Failure``/``@Response`` directive.

    ``type`` is ``None`` for a response without a body. ``example`` holds
    the parsed ``{example=...}`` JSON, if any.
    """

    code: str
    type: Optional[TypeRef] = None
    description: Optional[str] = None
    example: Any = None
    headers: dict[str, HeaderDef] = Field(default_factory=dict)
    source: Optional[SourceLocation] = None


_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


class OperationFragment(BaseModel):
    """Everything one handler's comment block says about one route.

    ``responses`` maps a status code to every response declared for it, in
    directive order; more than one entry per code is merged by the
    assembler according to the target version. ``security`` is ``None``
    when the handler declares no ``@Security``, meaning the global
    requirement applies.
    """

    method: HTTPMethod
    path: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    consumes: list[str] = Field(default_factory=list)
    produces: list[str] = Field(default_factory=list)
    parameters: list[ParamDef] = Field(default_factory=list)
    responses: dict[str, list[ResponseDef]] = Field(default_factory=dict)
    security: Optional[list[dict[str, list[str]]]] = None
    deprecated: bool = False
    handler: Optional[str] = None
    location: SourceLocation

    @property
    def label(self) -> str:
        """Human-readable identity, e.g. ``GET /users/{id}``."""
        return f"{self.method.value.upper()} {self.path}"

    @property
    def placeholders(self) -> list[str]:
        """Names of ``{placeholder}`` segments in the route template."""
        return _PLACEHOLDER_RE.findall(self.path)


# --- Document ---


class Document(BaseModel):
    """The assembled, immutable API description.

    ``paths`` preserves merge order (file path, then line) for routes and
    canonical :class:`HTTPMethod` order within a route. ``components`` is
    sorted by schema name.
    """

    model_config = ConfigDict(frozen=True)

    openapi: OpenAPIVersion
    info: GeneralInfo
    servers: list[ServerEntry] = Field(default_factory=list)
    security_schemes: dict[str, SecuritySchemeDef] = Field(default_factory=dict)
    paths: dict[str, dict[HTTPMethod, OperationFragment]] = Field(default_factory=dict)
    components: dict[str, SchemaNode] = Field(default_factory=dict)

    @property
    def operations(self) -> list[OperationFragment]:
        return [op for methods in self.paths.values() for op in methods.values()]


SchemaNode.model_rebuild()
TypeRef.model_rebuild()
