"""Tests for swagdoc.schema.gotypes -- type expressions, qualification, literals."""

from __future__ import annotations

import pytest

from swagdoc.exceptions import DirectiveSyntaxError
from swagdoc.models import SchemaNode, TypeRef, WrapperKind
from swagdoc.schema.gotypes import (
    FileContext,
    coerce_literal,
    inline_schema,
    package_name,
    parse_type_expr,
)

CTX = FileContext(
    package="handlers",
    imports={"m": "example.com/app/model", "api": "example.com/app/api/v2"},
)

A, M, P = WrapperKind.ARRAY, WrapperKind.MAP, WrapperKind.POINTER


# ---------------------------------------------------------------------------
# Package names and qualification
# ---------------------------------------------------------------------------


class TestPackageName:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("github.com/acme/shop/internal/model", "model"),
            ("gopkg.in/yaml.v3", "yaml"),
            ("example.com/app/api/v2", "api"),
            ("github.com/acme/go-kit", "kit"),
            ("github.com/acme/client-go", "client"),
            ("fmt", "fmt"),
        ],
    )
    def test_last_segment(self, path: str, expected: str) -> None:
        assert package_name(path) == expected


class TestQualify:
    def test_local_identifier(self) -> None:
        assert CTX.qualify("User") == "handlers.User"

    def test_imported_alias(self) -> None:
        assert CTX.qualify("m.User") == "model.User"
        assert CTX.qualify("api.Error") == "api.Error"

    def test_unimported_package_used_directly(self) -> None:
        assert CTX.qualify("model.User") == "model.User"

    def test_primitives_untouched(self) -> None:
        assert CTX.qualify("int64") == "int64"
        assert CTX.qualify("time.Time") == "time.Time"


# ---------------------------------------------------------------------------
# Type expressions
# ---------------------------------------------------------------------------


class TestParseTypeExpr:
    @pytest.mark.parametrize(
        ("text", "name", "wrappers"),
        [
            ("User", "handlers.User", ()),
            ("*User", "handlers.User", (P,)),
            ("[]*m.User", "model.User", (A, P)),
            ("map[string][]int", "int", (M, A)),
            ("[4]string", "string", (A,)),
            ("[]byte", "[]byte", ()),
            ("interface{}", "any", ()),
            ("struct{}", "object", ()),
        ],
    )
    def test_shapes(self, text: str, name: str, wrappers: tuple) -> None:
        assert parse_type_expr(text, CTX) == TypeRef(name=name, wrappers=wrappers)

    def test_overrides(self) -> None:
        ref = parse_type_expr("Envelope{data=[]m.User,meta=Meta}", CTX)
        assert ref.name == "handlers.Envelope"
        assert ref.overrides == (
            ("data", TypeRef(name="model.User", wrappers=(A,))),
            ("meta", TypeRef(name="handlers.Meta")),
        )

    def test_nested_overrides(self) -> None:
        ref = parse_type_expr("Envelope{data=Page{items=[]User}}", CTX)
        (key, inner), = ref.overrides
        assert key == "data"
        assert inner.overrides[0][1] == TypeRef(name="handlers.User", wrappers=(A,))

    @pytest.mark.parametrize(
        "text",
        ["", "chan int", "func()", "Page[T]", "Envelope{data}", "Envelope{data=User", "a b"],
    )
    def test_invalid(self, text: str) -> None:
        with pytest.raises(DirectiveSyntaxError):
            parse_type_expr(text, CTX)

    def test_str_round_trip_shape(self) -> None:
        assert str(parse_type_expr("[]*m.User", CTX)) == "[]*model.User"


# ---------------------------------------------------------------------------
# Inline schemas
# ---------------------------------------------------------------------------


class TestInlineSchema:
    def test_primitive(self) -> None:
        assert inline_schema(TypeRef(name="int64")) == SchemaNode(type="integer", format="int64")

    def test_named_type_becomes_ref(self) -> None:
        seen: list[str] = []
        node = inline_schema(TypeRef(name="model.User", wrappers=(A,)), seen.append)
        assert node == SchemaNode(type="array", items=SchemaNode(ref="model.User"))
        assert seen == ["model.User"]

    def test_map_and_pointer(self) -> None:
        node = inline_schema(TypeRef(name="string", wrappers=(P, M)))
        assert node == SchemaNode(type="object", additional_properties=SchemaNode(type="string"))

    def test_file_is_binary(self) -> None:
        assert inline_schema(TypeRef(name="file")).binary

    def test_overrides_compose_with_all_of(self) -> None:
        ref = TypeRef(name="model.Envelope", overrides=(("data", TypeRef(name="model.User")),))
        node = inline_schema(ref)
        assert node.all_of[0] == SchemaNode(ref="model.Envelope")
        assert node.all_of[1].properties == {"data": SchemaNode(ref="model.User")}


class TestCoerceLiteral:
    @pytest.mark.parametrize(
        ("raw", "ref", "expected"),
        [
            ("42", TypeRef(name="int"), 42),
            ("4.5", TypeRef(name="float64"), 4.5),
            ("TRUE", TypeRef(name="bool"), True),
            ("abc", TypeRef(name="int"), "abc"),
            ("1,2,3", TypeRef(name="int", wrappers=(A,)), [1, 2, 3]),
            ('{"a": 1}', TypeRef(name="model.User"), {"a": 1}),
            ("plain", TypeRef(name="model.User"), "plain"),
            ("42", TypeRef(name="string"), "42"),
        ],
    )
    def test_coercion(self, raw: str, ref: TypeRef, expected: object) -> None:
        assert coerce_literal(raw, ref) == expected
