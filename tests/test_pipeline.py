"""End-to-end tests for swagdoc.pipeline over real Go source trees.

Covers:
- The petstore fixture: paths, components, servers, security, warnings
- Exclusion of vendored code and ignored comment positions
- Determinism across runs and worker counts
- Fatal errors carrying the warnings recorded before them
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from swagdoc.document.render import render_document
from swagdoc.exceptions import ConfigurationError, ResolutionError, StructuralError
from swagdoc.models import GenerateConfig, HTTPMethod, OpenAPIVersion
from swagdoc.pipeline import generate_document, process_file
from swagdoc.scanner.locator import SourceFile


def _petstore_config(**overrides) -> GenerateConfig:
    settings = {"search_dirs": ["petstore"], "exclude_dirs": ["vendor"], "workers": 4}
    settings.update(overrides)
    return GenerateConfig(**settings)


# ---------------------------------------------------------------------------
# Petstore
# ---------------------------------------------------------------------------


class TestPetstore:
    def test_paths_and_operations(self, petstore: Path) -> None:
        document, _ = generate_document(_petstore_config())
        assert list(document.paths) == ["/pets", "/pets/{id}", "/pets/{id}/photo"]
        assert list(document.paths["/pets"]) == [HTTPMethod.GET, HTTPMethod.POST]
        assert [op.operation_id for op in document.operations] == [
            "get_pets",
            "post_pets",
            "get_pets_id",
            "post_pets_id_photo",
        ]
        assert "/not/a/handler" not in document.paths
        assert "/vendored" not in document.paths

    def test_components(self, petstore: Path) -> None:
        document, _ = generate_document(_petstore_config())
        assert list(document.components) == [
            "model.Category",
            "model.Error",
            "model.Owner",
            "model.Pet",
            "model.Status",
        ]
        pet = document.components["model.Pet"]
        assert pet.required == ["id", "name", "status", "category", "born_at"]
        assert pet.description == "Pet is an animal for sale."
        assert pet.properties["children"].items.ref == "model.Pet"
        assert pet.properties["children"].description == "Offspring of this pet"
        assert pet.properties["born_at"].format == "date-time"
        assert "internal" not in pet.properties
        owner = document.components["model.Owner"]
        assert list(owner.properties) == ["first_name", "last_name", "email", "pets"]
        assert document.components["model.Status"].type == "string"

    def test_general_info_and_security(self, petstore: Path) -> None:
        document, diagnostics = generate_document(_petstore_config())
        assert document.info.title == "Petstore API"
        assert document.info.contact.email == "support@example.com"
        assert [s.url for s in document.servers] == ["https://petstore.example.com/v1"]
        assert list(document.security_schemes) == ["ApiKeyAuth", "OAuth2Password"]
        assert document.security_schemes["OAuth2Password"].scopes == {
            "read": "Grants read access",
            "write": "Grants write access",
        }
        assert len(diagnostics) == 0

    def test_rendered_document(self, petstore: Path) -> None:
        document, _ = generate_document(_petstore_config())
        out = render_document(document)
        upload = out["paths"]["/pets/{id}/photo"]["post"]
        assert list(upload["requestBody"]["content"]) == ["multipart/form-data"]
        assert upload["responses"]["204"] == {"description": "Uploaded"}
        create = out["paths"]["/pets"]["post"]
        assert create["security"] == [{"OAuth2Password": ["write"]}]
        assert create["responses"]["201"]["headers"]["Location"]["schema"] == {"type": "string"}
        listing = out["paths"]["/pets"]["get"]
        assert listing["parameters"][1]["schema"] == {
            "type": "integer",
            "default": 20,
            "minimum": 1,
            "maximum": 100,
        }
        assert listing["responses"]["200"]["content"]["application/json"]["schema"] == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/model.Pet"},
        }

    def test_vendored_code_scanned_without_exclude(self, petstore: Path) -> None:
        document, _ = generate_document(_petstore_config(exclude_dirs=[]))
        assert "/vendored" in document.paths
        assert "thirdparty.Secret" in document.components

    def test_openapi_30(self, petstore: Path) -> None:
        document, _ = generate_document(_petstore_config(openapi_version=OpenAPIVersion.V3_0_0))
        out = render_document(document)
        assert out["openapi"] == "3.0.0"
        photo = out["paths"]["/pets/{id}/photo"]["post"]["requestBody"]
        schema = photo["content"]["multipart/form-data"]["schema"]
        assert schema["properties"]["photo"] == {"type": "string", "format": "binary", "description": "Photo"}


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_byte_identical_across_runs_and_worker_counts(self, petstore: Path) -> None:
        outputs = []
        for workers in (1, 4, 8, 4):
            document, diagnostics = generate_document(_petstore_config(workers=workers))
            outputs.append((json.dumps(render_document(document), indent=2), [str(d) for d in diagnostics]))
        assert all(output == outputs[0] for output in outputs)


# ---------------------------------------------------------------------------
# Failures and warnings
# ---------------------------------------------------------------------------


class TestFailures:
    def test_duplicate_route_across_files(self, go_project) -> None:
        route = """\
            package api

            // @Success 200
            // @Router /dup [get]
            func {name}() {{}}
            """
        go_project({"a/a.go": route.format(name="A"), "b/b.go": route.format(name="B")})
        with pytest.raises(StructuralError) as excinfo:
            generate_document(GenerateConfig())
        assert [str(loc) for loc in excinfo.value.locations] == ["a/a.go:4", "b/b.go:4"]

    def test_missing_type_is_resolution_error_with_warnings(self, go_project) -> None:
        go_project({
            "api/h.go": """\
                package api

                // @Sumary typo
                // @Success 200 {object} model.Ghost
                // @Router /ghost [get]
                func Ghost() {}
                """,
        })
        with pytest.raises(ResolutionError, match="model.Ghost") as excinfo:
            generate_document(GenerateConfig())
        assert "unknown directive @Sumary" in excinfo.value.warnings[0].message

    def test_missing_general_info(self, go_project) -> None:
        go_project({"main.go": "package main\n\nfunc main() {}\n"})
        with pytest.raises(StructuralError, match="missing required @title and @version in main.go"):
            generate_document(GenerateConfig())

    def test_unmatched_exclude(self, go_project) -> None:
        go_project({})
        with pytest.raises(ConfigurationError, match="match no directory"):
            generate_document(GenerateConfig(exclude_dirs=["vendor"]))

    def test_free_standing_directives_outside_entry_warn(self, go_project) -> None:
        go_project({
            "api/doc.go": """\
                package api

                // @title Not here

                type X int
                """,
        })
        _, diagnostics = generate_document(GenerateConfig())
        messages = [str(d) for d in diagnostics]
        assert messages == ["api/doc.go:3: free-standing directives are only read from the general info file"]

    def test_operation_directives_without_router_in_other_file_warn(self, go_project) -> None:
        go_project({
            "api/h.go": """\
                package api

                // @Summary forgotten router
                func H() {}
                """,
        })
        _, diagnostics = generate_document(GenerateConfig())
        assert "no @Router" in list(diagnostics)[0].message

    def test_duplicate_type_first_wins(self, go_project) -> None:
        go_project({
            "a/a.go": "package model\n\ntype T struct {\n\tA int `json:\"a\"`\n}\n",
            "b/b.go": "package model\n\ntype T struct {\n\tB int `json:\"b\"`\n}\n",
            "h/h.go": """\
                package h

                // @Success 200 {object} model.T
                // @Router /t [get]
                func H() {}
                """,
        })
        document, diagnostics = generate_document(GenerateConfig())
        assert list(document.components["model.T"].properties) == ["a"]
        assert "already declared at a/a.go:3" in list(diagnostics)[0].message


class TestProcessFile:
    def test_entry_file_blocks(self, petstore: Path) -> None:
        path = petstore / "main.go"
        result = process_file(SourceFile(path=path, display="petstore/main.go"), is_entry=True)
        assert len(result.general_blocks) == 3
        assert result.operations == []

    def test_non_entry_file_ignores_general_blocks(self, petstore: Path) -> None:
        path = petstore / "main.go"
        result = process_file(SourceFile(path=path, display="petstore/main.go"), is_entry=False)
        assert result.general_blocks == []
        assert len(result.diagnostics) > 0

    def test_unknown_directive_on_type_declaration_warns(self, go_project) -> None:
        root = go_project({"model/user.go": """\
            package model

            // User is a user.
            // @Descripton typo
            type User struct {
            \tName string `json:"name"`
            }
        """})
        result = process_file(SourceFile(path=root / "model/user.go", display="model/user.go"), is_entry=False)
        (diagnostic,) = list(result.diagnostics)
        assert diagnostic.message == "unknown directive @Descripton"
        assert str(diagnostic.location) == "model/user.go:4"
        assert [struct.name for struct in result.structs] == ["model.User"]
