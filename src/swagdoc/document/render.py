"""Convert a :class:`~swagdoc.models.Document` into an OpenAPI mapping.

The result is plain ``dict``/``list`` data ready for :mod:`json` or
:mod:`yaml`. Key order is fixed so that two renders of the same document
serialize byte for byte identically.

Version-specific representations:

=====================  ======================  ==============================
Construct              3.0.0                   3.1.x
=====================  ======================  ==============================
``$ref`` + siblings    ``allOf: [$ref]``       siblings next to ``$ref``
file payload           ``format: binary``      ``contentMediaType``
repeated status code   first one only          ``anyOf`` of the schemas
=====================  ======================  ==============================
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional

from swagdoc.models import (
    Document,
    ExternalDocs,
    GeneralInfo,
    OpenAPIVersion,
    OperationFragment,
    ParamDef,
    ParameterLocation,
    ResponseDef,
    SchemaNode,
    SecuritySchemeDef,
    SecuritySchemeKind,
)
from swagdoc.schema.gotypes import inline_schema

COMPONENT_PREFIX = "#/components/schemas/"
DEFAULT_MEDIA_TYPE = "application/json"
OCTET_STREAM = "application/octet-stream"

_CONSTRAINT_KEYS = (
    ("minimum", "minimum"),
    ("maximum", "maximum"),
    ("minLength", "min_length"),
    ("maxLength", "max_length"),
)

_OAUTH2_FLOWS = {
    SecuritySchemeKind.OAUTH2_IMPLICIT: "implicit",
    SecuritySchemeKind.OAUTH2_PASSWORD: "password",
    SecuritySchemeKind.OAUTH2_CLIENT_CREDENTIALS: "clientCredentials",
    SecuritySchemeKind.OAUTH2_AUTHORIZATION_CODE: "authorizationCode",
}


def component_pointer(name: str) -> str:
    """JSON pointer to the component *name*, with ``~`` and ``/`` escaped."""
    return COMPONENT_PREFIX + name.replace("~", "~0").replace("/", "~1")


def render_document(document: Document) -> dict[str, Any]:
    """Render *document* as an OpenAPI mapping."""
    version = document.openapi
    info = document.info
    out: dict[str, Any] = {"openapi": version.value, "info": render_info(info, version)}
    if info.external_docs is not None:
        out["externalDocs"] = _external_docs(info.external_docs)
    if document.servers:
        out["servers"] = [
            _compact({"url": server.url, "description": server.description})
            for server in document.servers
        ]
    if info.tags:
        out["tags"] = [
            _compact({
                "name": tag.name,
                "description": tag.description,
                "externalDocs": _external_docs(tag.external_docs) if tag.external_docs else None,
            })
            for tag in info.tags
        ]
    if info.security:
        out["security"] = [dict(requirement) for requirement in info.security]

    out["paths"] = {
        route: {method.value: render_operation(op, version) for method, op in methods.items()}
        for route, methods in document.paths.items()
    }

    components: dict[str, Any] = {}
    if document.components:
        components["schemas"] = {
            name: render_schema(schema, version) for name, schema in document.components.items()
        }
    if document.security_schemes:
        components["securitySchemes"] = {
            name: render_security_scheme(scheme) for name, scheme in document.security_schemes.items()
        }
    if components:
        out["components"] = components
    return out


def render_info(info: GeneralInfo, version: OpenAPIVersion) -> dict[str, Any]:
    contact = info.contact.model_dump(exclude_none=True) if info.contact else None
    license_: Optional[dict[str, Any]] = None
    if info.license is not None:
        license_ = _compact({
            "name": info.license.name,
            "identifier": info.license.identifier if version.is_31 else None,
            "url": info.license.url,
        })
    return _compact({
        "title": info.title,
        "summary": info.summary if version.is_31 else None,
        "description": info.description,
        "termsOfService": info.terms_of_service,
        "contact": contact or None,
        "license": license_ or None,
        "version": info.version,
    })


def _external_docs(docs: ExternalDocs) -> dict[str, Any]:
    return _compact({"description": docs.description, "url": docs.url})


def _compact(mapping: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


# --- Schemas ---


def render_schema(node: SchemaNode, version: OpenAPIVersion) -> dict[str, Any]:
    """Render one schema node, recursively."""
    out: dict[str, Any] = {}
    if node.ref is not None:
        pointer = {"$ref": component_pointer(node.ref)}
        siblings = _ref_siblings(node)
        if not siblings:
            return pointer
        if version.is_31:
            return {**pointer, **siblings}
        return {"allOf": [pointer], **siblings}

    if node.all_of:
        out["allOf"] = [render_schema(child, version) for child in node.all_of]
    if node.any_of:
        out["anyOf"] = [render_schema(child, version) for child in node.any_of]
    if node.type is not None:
        out["type"] = node.type
    if node.binary:
        if version.is_31:
            out["contentMediaType"] = OCTET_STREAM
        else:
            out["format"] = "binary"
    elif node.format is not None:
        out["format"] = node.format
    if node.description is not None:
        out["description"] = node.description
    if node.enum:
        out["enum"] = list(node.enum)
    if node.default is not None:
        out["default"] = node.default
    for key, attr in _CONSTRAINT_KEYS:
        value = getattr(node, attr)
        if value is not None:
            out[key] = _number(value)
    if node.items is not None:
        out["items"] = render_schema(node.items, version)
    if node.properties:
        out["properties"] = {
            name: render_schema(child, version) for name, child in node.properties.items()
        }
    if node.additional_properties is not None:
        out["additionalProperties"] = render_schema(node.additional_properties, version)
    if node.required:
        out["required"] = list(node.required)
    if node.example is not None:
        out["example"] = node.example
    return out


def _ref_siblings(node: SchemaNode) -> dict[str, Any]:
    """Use-site keywords next to a ``$ref``: documentation and field constraints."""
    siblings: dict[str, Any] = {}
    if node.format is not None:
        siblings["format"] = node.format
    if node.description is not None:
        siblings["description"] = node.description
    if node.enum:
        siblings["enum"] = list(node.enum)
    if node.default is not None:
        siblings["default"] = node.default
    for key, attr in _CONSTRAINT_KEYS:
        value = getattr(node, attr)
        if value is not None:
            siblings[key] = _number(value)
    if node.example is not None:
        siblings["example"] = node.example
    return siblings


def _number(value: float | int) -> float | int:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def param_schema(param: ParamDef) -> SchemaNode:
    """Use-site schema of a parameter, with its attribute constraints applied."""
    node = inline_schema(param.type)
    target = node.items if node.items is not None else node
    constraints = {
        "enum": list(param.enum),
        "default": param.default,
        "format": param.format,
        "minimum": param.minimum,
        "maximum": param.maximum,
        "min_length": param.min_length,
        "max_length": param.max_length,
    }
    update = {key: value for key, value in constraints.items() if value not in (None, [])}
    if not update:
        return node
    if target is node:
        return node.model_copy(update=update)
    return node.model_copy(update={"items": target.model_copy(update=update)})


# --- Operations ---


def render_operation(op: OperationFragment, version: OpenAPIVersion) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if op.tags:
        out["tags"] = list(op.tags)
    if op.summary:
        out["summary"] = op.summary
    if op.description:
        out["description"] = op.description
    if op.operation_id:
        out["operationId"] = op.operation_id

    parameters = [
        _render_parameter(p, version)
        for p in op.parameters
        if p.location not in (ParameterLocation.BODY, ParameterLocation.FORM_DATA)
    ]
    if parameters:
        out["parameters"] = parameters
    request_body = _render_request_body(op, version)
    if request_body is not None:
        out["requestBody"] = request_body

    out["responses"] = _render_responses(op, version)
    if op.deprecated:
        out["deprecated"] = True
    if op.security is not None:
        out["security"] = [dict(requirement) for requirement in op.security]
    return out


def _render_parameter(param: ParamDef, version: OpenAPIVersion) -> dict[str, Any]:
    out: dict[str, Any] = {"name": param.name, "in": param.location.value}
    if param.description:
        out["description"] = param.description
    out["required"] = param.required
    out["schema"] = render_schema(param_schema(param), version)
    if param.example is not None:
        out["example"] = param.example
    return out


def _render_request_body(op: OperationFragment, version: OpenAPIVersion) -> Optional[dict[str, Any]]:
    body = next((p for p in op.parameters if p.location is ParameterLocation.BODY), None)
    if body is not None:
        schema = render_schema(param_schema(body), version)
        media_types = op.consumes or [DEFAULT_MEDIA_TYPE]
        out: dict[str, Any] = {}
        if body.description:
            out["description"] = body.description
        out["content"] = {mime: {"schema": schema} for mime in media_types}
        out["required"] = body.required
        return out

    form = [p for p in op.parameters if p.location is ParameterLocation.FORM_DATA]
    if not form:
        return None
    properties: dict[str, SchemaNode] = {}
    required: list[str] = []
    for param in form:
        node = param_schema(param)
        if param.description:
            node = node.model_copy(update={"description": param.description})
        properties[param.name] = node
        if param.required:
            required.append(param.name)
    schema = render_schema(SchemaNode(type="object", properties=properties, required=required), version)
    if op.consumes:
        media_types = op.consumes
    elif any(p.type.name == "file" for p in form):
        media_types = ["multipart/form-data"]
    else:
        media_types = ["application/x-www-form-urlencoded"]
    return {
        "content": {mime: {"schema": schema} for mime in media_types},
        "required": bool(required),
    }


def _status_description(code: str) -> str:
    if code == "default":
        return "Default response"
    try:
        return HTTPStatus(int(code)).phrase
    except ValueError:
        return ""


def _render_responses(op: OperationFragment, version: OpenAPIVersion) -> dict[str, Any]:
    if not op.responses:
        return {"default": {"description": "Default response"}}
    out: dict[str, Any] = {}
    for code, responses in op.responses.items():
        out[code] = _render_response(code, responses, op, version)
    return out


def _render_response(
    code: str,
    responses: list[ResponseDef],
    op: OperationFragment,
    version: OpenAPIVersion,
) -> dict[str, Any]:
    description = next((r.description for r in responses if r.description), None)
    out: dict[str, Any] = {"description": description or _status_description(code)}

    headers: dict[str, Any] = {}
    for response in responses:
        for name, header in response.headers.items():
            headers.setdefault(name, _compact({
                "description": header.description,
                "schema": render_schema(inline_schema(header.type), version),
            }))
    if headers:
        out["headers"] = headers

    schemas = [
        render_schema(inline_schema(r.type), version) for r in responses if r.type is not None
    ]
    if schemas:
        schema = schemas[0]
        if len(schemas) > 1:
            distinct: list[dict[str, Any]] = []
            for candidate in schemas:
                if candidate not in distinct:
                    distinct.append(candidate)
            schema = distinct[0] if len(distinct) == 1 else {"anyOf": distinct}
        media_type: dict[str, Any] = {"schema": schema}
        example = next((r.example for r in responses if r.example is not None), None)
        if example is not None:
            media_type["example"] = example
        out["content"] = {mime: dict(media_type) for mime in op.produces or [DEFAULT_MEDIA_TYPE]}
    return out


# --- Security ---


def render_security_scheme(scheme: SecuritySchemeDef) -> dict[str, Any]:
    kind = scheme.kind
    if kind is SecuritySchemeKind.API_KEY:
        out: dict[str, Any] = {"type": "apiKey", "in": scheme.location_in, "name": scheme.parameter_name}
    elif kind is SecuritySchemeKind.BASIC:
        out = {"type": "http", "scheme": "basic"}
    elif kind is SecuritySchemeKind.BEARER:
        out = _compact({"type": "http", "scheme": "bearer", "bearerFormat": scheme.bearer_format})
    elif kind is SecuritySchemeKind.OPENID_CONNECT:
        out = {"type": "openIdConnect", "openIdConnectUrl": scheme.open_id_connect_url}
    else:
        flow = _compact({
            "authorizationUrl": scheme.authorization_url,
            "tokenUrl": scheme.token_url,
            "refreshUrl": scheme.refresh_url,
        })
        flow["scopes"] = dict(scheme.scopes)
        out = {"type": "oauth2", "flows": {_OAUTH2_FLOWS[kind]: flow}}
    if scheme.description:
        out["description"] = scheme.description
    return out
