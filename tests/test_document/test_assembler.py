"""Tests for swagdoc.document.assembler -- merging fragments into a Document.

Covers:
- Required general info and the 3.0 downgrade of 3.1-only fields
- Fallback servers from host, base path and schemes
- Route ordering, canonical method order, duplicate routes
- Path placeholder / path parameter agreement
- Default media types and repeated status codes per version
- Security and operationId checks, dangling references
"""

from __future__ import annotations

import pytest

from swagdoc.diagnostics import Diagnostics
from swagdoc.exceptions import ResolutionError, StructuralError
from swagdoc.models import (
    GeneralFragment,
    GeneralInfo,
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
    TypeRef,
)
from swagdoc.document.assembler import assemble, fallback_servers

V30, V31 = OpenAPIVersion.V3_0_0, OpenAPIVersion.V3_1_1


def _general(**info) -> GeneralFragment:
    info.setdefault("title", "API")
    info.setdefault("version", "1.0")
    return GeneralFragment(info=GeneralInfo(**info))


def _op(
    method: str,
    path: str,
    file: str = "h.go",
    line: int = 1,
    params: tuple[str, ...] = (),
    responses: dict | None = None,
    **extra,
) -> OperationFragment:
    return OperationFragment(
        method=HTTPMethod(method),
        path=path,
        parameters=[
            ParamDef(name=name, location=ParameterLocation.PATH, type=TypeRef(name="int"), required=True)
            for name in params
        ],
        responses=responses if responses is not None else {"200": [ResponseDef(code="200")]},
        handler=f"{method}{line}",
        location=SourceLocation(file=file, line=line),
        **extra,
    )


def _assemble(operations=(), general=None, components=None, version=V31, diagnostics=None):
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    return assemble(
        general or _general(),
        list(operations),
        components or {},
        version,
        diagnostics,
        entry_file="main.go",
    )


# ---------------------------------------------------------------------------
# General info
# ---------------------------------------------------------------------------


class TestInfo:
    @pytest.mark.parametrize(
        ("info", "missing"),
        [
            ({"title": None}, "@title"),
            ({"version": ""}, "@version"),
            ({"title": None, "version": None}, "@title and @version"),
        ],
    )
    def test_missing_title_or_version(self, info: dict, missing: str) -> None:
        with pytest.raises(StructuralError, match=f"missing required {missing} in main.go"):
            _assemble(general=_general(**info))

    def test_31_only_fields_dropped_for_30(self) -> None:
        diagnostics = Diagnostics()
        general = _general(summary="Short", license=License(name="MIT", identifier="MIT"))
        document = _assemble(general=general, version=V30, diagnostics=diagnostics)
        assert document.info.summary is None
        assert document.info.license.identifier is None
        assert len(diagnostics) == 2
        assert general.info.summary == "Short"

    def test_31_keeps_summary(self) -> None:
        document = _assemble(general=_general(summary="Short"))
        assert document.info.summary == "Short"


class TestServers:
    def test_explicit_servers_win(self) -> None:
        general = _general(host="ignored.example.com")
        general.servers.append(ServerEntry(url="https://api.example.com"))
        assert [s.url for s in _assemble(general=general).servers] == ["https://api.example.com"]

    @pytest.mark.parametrize(
        ("info", "urls"),
        [
            ({"host": "api.example.com", "base_path": "/v1", "schemes": ["https", "http"]},
             ["https://api.example.com/v1", "http://api.example.com/v1"]),
            ({"host": "api.example.com", "base_path": "v1"}, ["//api.example.com/v1"]),
            ({"base_path": "/v1"}, ["/v1"]),
            ({}, []),
        ],
    )
    def test_fallback(self, info: dict, urls: list[str]) -> None:
        assert [s.url for s in fallback_servers(GeneralInfo(**info))] == urls


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestPaths:
    def test_routes_ordered_by_file_then_line(self) -> None:
        document = _assemble([
            _op("get", "/b", file="b.go", line=1),
            _op("get", "/a2", file="a.go", line=20),
            _op("get", "/a1", file="a.go", line=10),
        ])
        assert list(document.paths) == ["/a1", "/a2", "/b"]

    def test_methods_in_canonical_order(self) -> None:
        document = _assemble([
            _op("delete", "/x", line=1),
            _op("post", "/x", line=2),
            _op("get", "/x", line=3),
        ])
        assert list(document.paths["/x"]) == [HTTPMethod.GET, HTTPMethod.POST, HTTPMethod.DELETE]

    def test_duplicate_route_reports_both_locations(self) -> None:
        with pytest.raises(StructuralError) as excinfo:
            _assemble([_op("get", "/x", file="b.go", line=7), _op("get", "/x", file="a.go", line=3)])
        error = excinfo.value
        assert "Duplicate operation GET /x" in str(error)
        assert [str(loc) for loc in error.locations] == ["a.go:3", "b.go:7"]
        assert error.exit_code == 4

    def test_placeholder_without_param(self) -> None:
        with pytest.raises(StructuralError, match=r"placeholder '\{id\}' has no path @Param"):
            _assemble([_op("get", "/users/{id}")])

    def test_param_without_placeholder(self) -> None:
        with pytest.raises(StructuralError, match="has no '{id}' placeholder"):
            _assemble([_op("get", "/users", params=("id",))])

    def test_matching_placeholders(self) -> None:
        document = _assemble([_op("get", "/users/{id}/pets/{pet}", params=("id", "pet"))])
        assert "/users/{id}/pets/{pet}" in document.paths

    def test_inputs_not_modified(self) -> None:
        op = _op("get", "/x")
        general = _general(consumes=["application/json"])
        document = _assemble([op], general=general)
        assert op.consumes == []
        assert document.paths["/x"][HTTPMethod.GET].consumes == ["application/json"]

    def test_explicit_media_types_kept(self) -> None:
        op = _op("get", "/x", produces=["text/plain"])
        document = _assemble([op], general=_general(produces=["application/json"]))
        assert document.paths["/x"][HTTPMethod.GET].produces == ["text/plain"]


# ---------------------------------------------------------------------------
# Repeated status codes
# ---------------------------------------------------------------------------


def _repeated() -> OperationFragment:
    return _op(
        "get",
        "/x",
        responses={
            "200": [
                ResponseDef(code="200", type=TypeRef(name="string")),
                ResponseDef(code="200", type=TypeRef(name="int"), source=SourceLocation(file="h.go", line=5)),
            ]
        },
    )


class TestRepeatedCodes:
    def test_30_keeps_first_with_warning(self) -> None:
        diagnostics = Diagnostics()
        document = _assemble([_repeated()], version=V30, diagnostics=diagnostics)
        responses = document.paths["/x"][HTTPMethod.GET].responses["200"]
        assert [r.type.name for r in responses] == ["string"]
        (warning,) = list(diagnostics)
        assert warning.location.line == 5

    def test_31_keeps_all(self) -> None:
        document = _assemble([_repeated()])
        assert len(document.paths["/x"][HTTPMethod.GET].responses["200"]) == 2


# ---------------------------------------------------------------------------
# Cross checks
# ---------------------------------------------------------------------------


class TestCrossChecks:
    def test_undeclared_security_scheme_warns(self) -> None:
        diagnostics = Diagnostics()
        general = _general(security=[{"Global": []}])
        general.security_schemes["Known"] = SecuritySchemeDef(name="Known", kind=SecuritySchemeKind.BASIC)
        _assemble(
            [_op("get", "/x", security=[{"Known": []}, {"Missing": []}])],
            general=general,
            diagnostics=diagnostics,
        )
        messages = [d.message for d in diagnostics]
        assert messages == [
            "@security: security scheme 'Global' is not declared",
            "GET /x: security scheme 'Missing' is not declared",
        ]

    def test_duplicate_operation_id_warns(self) -> None:
        diagnostics = Diagnostics()
        _assemble(
            [_op("get", "/a", operation_id="same"), _op("get", "/b", line=2, operation_id="same")],
            diagnostics=diagnostics,
        )
        assert "already used by GET /a" in list(diagnostics)[0].message

    def test_dangling_reference_in_response(self) -> None:
        op = _op("get", "/x", responses={"200": [ResponseDef(code="200", type=TypeRef(name="m.User"))]})
        with pytest.raises(ResolutionError, match="m.User"):
            _assemble([op])

    def test_dangling_reference_in_component(self) -> None:
        op = _op("get", "/x", responses={"200": [ResponseDef(code="200", type=TypeRef(name="m.User"))]})
        components = {"m.User": SchemaNode(type="object", properties={"a": SchemaNode(ref="m.Gone")})}
        with pytest.raises(ResolutionError, match="schema m.User"):
            _assemble([op], components=components)

    def test_components_sorted(self) -> None:
        components = {"m.B": SchemaNode(type="object"), "m.A": SchemaNode(type="object")}
        assert list(_assemble(components=components).components) == ["m.A", "m.B"]

    def test_deterministic(self) -> None:
        ops = [_op("get", f"/r{i}", file=f"f{i % 3}.go", line=i) for i in range(9)]
        first = _assemble(ops)
        second = _assemble(list(reversed(ops)))
        assert first == second
