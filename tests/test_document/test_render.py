"""Tests for swagdoc.document.render -- Document to OpenAPI mapping."""

from __future__ import annotations

import json

import pytest

from swagdoc.models import (
    Contact,
    Document,
    GeneralInfo,
    HeaderDef,
    HTTPMethod,
    License,
    OpenAPIVersion,
    OperationFragment,
    ParamDef,
    ParameterLocation,
    ResponseDef,
    SchemaNode,
    SecuritySchemeDef,
    SecuritySchemeKind,
    ServerEntry,
    SourceLocation,
    TagDef,
    TypeRef,
    WrapperKind,
)
from swagdoc.document.render import (
    component_pointer,
    param_schema,
    render_document,
    render_operation,
    render_schema,
    render_security_scheme,
)

V30, V31 = OpenAPIVersion.V3_0_0, OpenAPIVersion.V3_1_1
LOC = SourceLocation(file="h.go", line=1)


def _param(name: str, location: ParameterLocation, type_name: str = "string", **extra) -> ParamDef:
    return ParamDef(name=name, location=location, type=TypeRef(name=type_name), **extra)


def _op(**extra) -> OperationFragment:
    extra.setdefault("method", HTTPMethod.POST)
    extra.setdefault("responses", {"200": [ResponseDef(code="200")]})
    return OperationFragment(path="/x", location=LOC, **extra)


# ---------------------------------------------------------------------------
# Document layout
# ---------------------------------------------------------------------------


class TestDocument:
    def test_key_order_and_sections(self) -> None:
        document = Document(
            openapi=V31,
            info=GeneralInfo(
                title="API",
                version="1",
                contact=Contact(name="Ops"),
                license=License(name="MIT", identifier="MIT"),
                tags=[TagDef(name="pets", description="Pets")],
                security=[{"Key": []}],
            ),
            servers=[ServerEntry(url="https://api.example.com", location=LOC)],
            security_schemes={"Key": SecuritySchemeDef(name="Key", kind=SecuritySchemeKind.BASIC)},
            paths={"/x": {HTTPMethod.GET: _op(method=HTTPMethod.GET)}},
            components={"m.User": SchemaNode(type="object")},
        )
        out = render_document(document)
        assert list(out) == ["openapi", "info", "servers", "tags", "security", "paths", "components"]
        assert out["openapi"] == "3.1.1"
        assert out["info"] == {
            "title": "API",
            "contact": {"name": "Ops"},
            "license": {"name": "MIT", "identifier": "MIT"},
            "version": "1",
        }
        assert out["servers"] == [{"url": "https://api.example.com"}]
        assert list(out["components"]) == ["schemas", "securitySchemes"]
        assert list(out["paths"]["/x"]) == ["get"]
        json.dumps(out)

    def test_minimal_document(self) -> None:
        out = render_document(Document(openapi=V30, info=GeneralInfo(title="T", version="1")))
        assert out == {"openapi": "3.0.0", "info": {"title": "T", "version": "1"}, "paths": {}}

    def test_component_pointer_escaping(self) -> None:
        assert component_pointer("model.User") == "#/components/schemas/model.User"
        assert component_pointer("a/b~c") == "#/components/schemas/a~1b~0c"


# ---------------------------------------------------------------------------
# Schemas per version
# ---------------------------------------------------------------------------


class TestSchemas:
    def test_plain_ref(self) -> None:
        assert render_schema(SchemaNode(ref="m.User"), V30) == {"$ref": "#/components/schemas/m.User"}

    def test_ref_with_siblings(self) -> None:
        node = SchemaNode(ref="m.User", description="Owner")
        assert render_schema(node, V31) == {"$ref": "#/components/schemas/m.User", "description": "Owner"}
        assert render_schema(node, V30) == {
            "allOf": [{"$ref": "#/components/schemas/m.User"}],
            "description": "Owner",
        }

    def test_ref_keeps_field_constraints(self) -> None:
        node = SchemaNode(ref="m.Code", format="uuid", enum=["a", "b"], min_length=1, maximum=9.0)
        pointer = {"$ref": "#/components/schemas/m.Code"}
        assert render_schema(node, V31) == {
            **pointer, "format": "uuid", "enum": ["a", "b"], "maximum": 9, "minLength": 1,
        }
        assert render_schema(node, V30) == {
            "allOf": [pointer], "format": "uuid", "enum": ["a", "b"], "maximum": 9, "minLength": 1,
        }

    def test_binary(self) -> None:
        node = SchemaNode(type="string", binary=True)
        assert render_schema(node, V30) == {"type": "string", "format": "binary"}
        assert render_schema(node, V31) == {"type": "string", "contentMediaType": "application/octet-stream"}

    def test_object_with_everything(self) -> None:
        node = SchemaNode(
            type="object",
            description="A thing",
            properties={
                "n": SchemaNode(type="integer", minimum=1.0, maximum=9.5),
                "tags": SchemaNode(type="array", items=SchemaNode(type="string", enum=["a"])),
                "meta": SchemaNode(type="object", additional_properties=SchemaNode(type="string")),
            },
            required=["n"],
            example={"n": 1},
        )
        assert render_schema(node, V31) == {
            "type": "object",
            "description": "A thing",
            "properties": {
                "n": {"type": "integer", "minimum": 1, "maximum": 9.5},
                "tags": {"type": "array", "items": {"type": "string", "enum": ["a"]}},
                "meta": {"type": "object", "additionalProperties": {"type": "string"}},
            },
            "required": ["n"],
            "example": {"n": 1},
        }

    def test_param_constraints_apply_to_array_items(self) -> None:
        param = ParamDef(
            name="ids",
            location=ParameterLocation.QUERY,
            type=TypeRef(name="int", wrappers=(WrapperKind.ARRAY,)),
            enum=[1, 2],
        )
        assert param_schema(param) == SchemaNode(type="array", items=SchemaNode(type="integer", enum=[1, 2]))

    def test_param_enum_on_array_of_named_items(self) -> None:
        param = ParamDef(
            name="states",
            location=ParameterLocation.QUERY,
            type=TypeRef(name="m.State", wrappers=(WrapperKind.ARRAY,)),
            enum=["on", "off"],
        )
        assert render_schema(param_schema(param), V30) == {
            "type": "array",
            "items": {"allOf": [{"$ref": "#/components/schemas/m.State"}], "enum": ["on", "off"]},
        }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestOperations:
    def test_parameters_and_body(self) -> None:
        op = _op(
            summary="Create",
            operation_id="create",
            consumes=["application/xml"],
            parameters=[
                _param("q", ParameterLocation.QUERY, "int", description="Query", default=3),
                _param("body", ParameterLocation.BODY, "m.User", required=True, description="The user"),
            ],
        )
        out = render_operation(op, V31)
        assert list(out) == ["summary", "operationId", "parameters", "requestBody", "responses"]
        assert out["parameters"] == [
            {"name": "q", "in": "query", "description": "Query", "required": False,
             "schema": {"type": "integer", "default": 3}},
        ]
        assert out["requestBody"] == {
            "description": "The user",
            "content": {"application/xml": {"schema": {"$ref": "#/components/schemas/m.User"}}},
            "required": True,
        }

    def test_form_data_with_file_is_multipart(self) -> None:
        op = _op(parameters=[
            _param("file", ParameterLocation.FORM_DATA, "file", required=True),
            _param("caption", ParameterLocation.FORM_DATA, description="Caption"),
        ])
        body = render_operation(op, V30)["requestBody"]
        schema = body["content"]["multipart/form-data"]["schema"]
        assert schema["properties"]["file"] == {"type": "string", "format": "binary"}
        assert schema["properties"]["caption"] == {"type": "string", "description": "Caption"}
        assert schema["required"] == ["file"]
        assert body["required"] is True

    def test_form_data_without_file_is_urlencoded(self) -> None:
        op = _op(parameters=[_param("name", ParameterLocation.FORM_DATA)])
        body = render_operation(op, V31)["requestBody"]
        assert list(body["content"]) == ["application/x-www-form-urlencoded"]
        assert body["required"] is False

    def test_response_descriptions_and_headers(self) -> None:
        header = HeaderDef(name="Location", type=TypeRef(name="string"), description="Where")
        op = _op(
            produces=["application/json", "text/xml"],
            responses={
                "201": [ResponseDef(code="201", type=TypeRef(name="m.User"), headers={"Location": header})],
                "404": [ResponseDef(code="404", description="Gone fishing")],
                "4XX": [ResponseDef(code="4XX")],
            },
        )
        responses = render_operation(op, V31)["responses"]
        created = responses["201"]
        assert created["description"] == "Created"
        assert created["headers"] == {"Location": {"description": "Where", "schema": {"type": "string"}}}
        assert list(created["content"]) == ["application/json", "text/xml"]
        assert responses["404"] == {"description": "Gone fishing"}
        assert responses["4XX"] == {"description": ""}

    def test_empty_responses_become_default(self) -> None:
        assert render_operation(_op(responses={}), V31)["responses"] == {
            "default": {"description": "Default response"}
        }

    def test_repeated_code_any_of_in_31(self) -> None:
        op = _op(responses={"200": [
            ResponseDef(code="200", type=TypeRef(name="m.A")),
            ResponseDef(code="200", type=TypeRef(name="m.B"), description="Either"),
            ResponseDef(code="200", type=TypeRef(name="m.A")),
        ]})
        response = render_operation(op, V31)["responses"]["200"]
        assert response["description"] == "Either"
        assert response["content"]["application/json"]["schema"] == {"anyOf": [
            {"$ref": "#/components/schemas/m.A"},
            {"$ref": "#/components/schemas/m.B"},
        ]}

    def test_response_example(self) -> None:
        op = _op(
            produces=["application/json", "application/xml"],
            responses={"200": [
                ResponseDef(code="200", type=TypeRef(name="m.A")),
                ResponseDef(code="200", type=TypeRef(name="m.A"), example={"id": 1}),
            ]},
        )
        content = render_operation(op, V30)["responses"]["200"]["content"]
        assert content["application/json"] == {
            "schema": {"$ref": "#/components/schemas/m.A"},
            "example": {"id": 1},
        }
        assert content["application/xml"]["example"] == {"id": 1}

    def test_deprecated_and_security(self) -> None:
        out = render_operation(_op(deprecated=True, security=[]), V31)
        assert out["deprecated"] is True
        assert out["security"] == []
        assert "security" not in render_operation(_op(), V31)


# ---------------------------------------------------------------------------
# Security schemes
# ---------------------------------------------------------------------------


class TestSecuritySchemes:
    @pytest.mark.parametrize(
        ("scheme", "expected"),
        [
            (
                SecuritySchemeDef(name="K", kind=SecuritySchemeKind.API_KEY, location_in="header",
                                  parameter_name="X-Key", description="Key"),
                {"type": "apiKey", "in": "header", "name": "X-Key", "description": "Key"},
            ),
            (
                SecuritySchemeDef(name="B", kind=SecuritySchemeKind.BASIC),
                {"type": "http", "scheme": "basic"},
            ),
            (
                SecuritySchemeDef(name="J", kind=SecuritySchemeKind.BEARER, bearer_format="JWT"),
                {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
            ),
            (
                SecuritySchemeDef(name="O", kind=SecuritySchemeKind.OPENID_CONNECT,
                                  open_id_connect_url="https://id/.well-known"),
                {"type": "openIdConnect", "openIdConnectUrl": "https://id/.well-known"},
            ),
            (
                SecuritySchemeDef(name="P", kind=SecuritySchemeKind.OAUTH2_PASSWORD,
                                  token_url="https://auth/token", scopes={"read": "Read"}),
                {"type": "oauth2", "flows": {"password": {"tokenUrl": "https://auth/token",
                                                          "scopes": {"read": "Read"}}}},
            ),
        ],
    )
    def test_render(self, scheme: SecuritySchemeDef, expected: dict) -> None:
        assert render_security_scheme(scheme) == expected
