import json

import pytest
import yaml

from express_openapi.generator.validator import (
    DocumentLoadError,
    ValidationResult,
    generate_report,
    load_document,
    validate_document,
    validate_file,
)


def _document(**overrides):
    doc = {
        "openapi": "3.1.0",
        "info": {"title": "Users API", "version": "1.0.0"},
        "paths": {
            "/users/{id}": {
                "get": {
                    "summary": "Get user",
                    "operationId": "getUser",
                    "parameters": [
                        {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
                    ],
                    "responses": {"200": {"description": "ok"}},
                }
            }
        },
        "components": {"schemas": {"User": {"type": "object"}}},
        "tags": [{"name": "Users"}],
    }
    doc.update(overrides)
    return doc


class TestValidateDocument:
    def test_clean_document(self):
        result = validate_document(_document())
        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_no_paths_is_a_warning(self):
        result = validate_document(_document(paths={}))
        assert result.is_valid is True
        assert [w.message for w in result.warnings] == ["No paths defined in the document"]
        assert result.warnings[0].suggestion == "Add at least one API endpoint"

    def test_missing_info_is_an_error(self):
        doc = _document()
        del doc["info"]
        result = validate_document(doc)
        assert result.is_valid is False
        assert "Missing required field: info" in [e.message for e in result.errors]

    def test_missing_info_fields(self):
        result = validate_document(_document(info={"title": "", "description": "x"}))
        messages = [e.message for e in result.errors]
        assert "Missing required field: info.title" in messages
        assert "Missing required field: info.version" in messages

    def test_schema_errors_carry_path_and_keyword(self):
        doc = _document()
        del doc["paths"]["/users/{id}"]["get"]["responses"]["200"]["description"]
        result = validate_document(doc)
        assert result.is_valid is False
        schema_errors = [e for e in result.errors if e.keyword]
        assert schema_errors
        assert all(e.path.startswith("/") for e in schema_errors)

    def test_operation_warnings(self):
        doc = _document()
        op = doc["paths"]["/users/{id}"]["get"]
        del op["summary"]
        op["responses"] = {"404": {"description": "missing"}}
        result = validate_document(doc)
        messages = [w.message for w in result.warnings]
        assert "Operation should have summary or description: /users/{id}.get" in messages
        assert "Operation should have at least one success response (2xx): /users/{id}.get" in messages

    def test_operation_without_responses(self):
        doc = _document()
        doc["paths"]["/users/{id}"]["get"]["responses"] = {}
        result = validate_document(doc)
        assert "Operation must have at least one response: /users/{id}.get" in [e.message for e in result.errors]

    def test_parameter_problems(self):
        doc = _document()
        doc["paths"]["/users/{id}"]["get"]["parameters"].append({"name": "q"})
        result = validate_document(doc)
        messages = [e.message for e in result.errors]
        assert "Parameter missing 'in' field: /users/{id}.get" in messages
        assert "Parameter must have schema or content: /users/{id}.get" in messages
        assert not any(m.startswith("Validation exception") for m in messages)

    def test_parameter_missing_in_keeps_custom_checks(self):
        doc = _document()
        doc["paths"]["/users/{id}"]["get"]["parameters"].append({"name": "q", "schema": {"type": "string"}})
        doc["paths"]["/users/{id}"]["get"]["summary"] = ""
        result = validate_document(doc)
        assert result.is_valid is False
        messages = [e.message for e in result.errors]
        assert "Parameter missing 'in' field: /users/{id}.get" in messages
        assert not any(m.startswith("Validation exception") for m in messages)
        assert "Operation should have summary or description: /users/{id}.get" in [
            w.message for w in result.warnings
        ]

    def test_spec_validator_crash_is_one_error(self, monkeypatch):
        def explode(self):
            raise KeyError("in")

        monkeypatch.setattr("openapi_spec_validator.OpenAPIV31SpecValidator.iter_errors", explode)
        doc = _document()
        doc["paths"]["/users/{id}"]["get"]["responses"] = {}
        result = validate_document(doc)
        messages = [e.message for e in result.errors]
        assert messages[0] == "Schema validation could not complete: KeyError('in')"
        assert "Operation must have at least one response: /users/{id}.get" in messages

    def test_unknown_type_and_optional_path_parameter_are_reported(self):
        doc = _document()
        op = doc["paths"]["/users/{id}"]["get"]
        op["parameters"][0]["required"] = False
        op["responses"]["200"]["content"] = {
            "application/json": {"schema": {"type": "object", "properties": {"data": {"type": "unknown"}}}}
        }
        result = validate_document(doc)
        assert result.is_valid is False
        assert any(e.keyword for e in result.errors)

    def test_path_without_slash(self):
        result = validate_document(_document(paths={"users": {}}))
        assert "Path should start with /: users" in [w.message for w in result.warnings]

    def test_empty_tags_and_schemas(self):
        result = validate_document(_document(tags=[], components={"schemas": {}}))
        messages = [w.message for w in result.warnings]
        assert "Tags array is empty" in messages
        assert "No reusable schemas defined in components" in messages

    def test_old_version_warning(self):
        result = validate_document(_document(openapi="2.0"))
        assert "OpenAPI version should be 3.x" in [w.message for w in result.warnings]

    def test_openapi_30_document(self):
        result = validate_document(_document(openapi="3.0.3"))
        assert result.is_valid is True

    def test_never_raises(self):
        result = validate_document(None)
        assert result.is_valid is False
        assert len(result.errors) == 1
        assert result.errors[0].message.startswith("Validation exception: ")


class TestLoadDocument:
    def test_yaml(self, tmp_path):
        path = tmp_path / "openapi.yaml"
        path.write_text(yaml.safe_dump(_document()))
        assert load_document(path)["info"]["title"] == "Users API"

    def test_json(self, tmp_path):
        path = tmp_path / "openapi.json"
        path.write_text(json.dumps(_document()))
        assert load_document(path)["openapi"] == "3.1.0"

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "openapi.txt"
        path.write_text("openapi: 3.1.0")
        with pytest.raises(DocumentLoadError, match="Unsupported file format"):
            load_document(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(DocumentLoadError):
            load_document(path)

    def test_broken_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(DocumentLoadError, match="Failed to read"):
            load_document(path)


class TestValidateFile:
    def test_valid_file(self, tmp_path):
        path = tmp_path / "openapi.yaml"
        path.write_text(yaml.safe_dump(_document()))
        assert validate_file(path).is_valid is True

    def test_missing_file(self, tmp_path):
        result = validate_file(tmp_path / "nope.yaml")
        assert result.is_valid is False
        assert result.errors[0].message.startswith("Failed to validate file: ")


class TestReport:
    def test_clean_report(self):
        report = generate_report(ValidationResult())
        lines = report.splitlines()
        assert lines[0] == "=" * 60
        assert lines[1] == "OPENAPI VALIDATION REPORT"
        assert "Status: VALID" in lines
        assert "No errors or warnings found!" in lines
        assert "Your OpenAPI document is perfectly valid." in lines

    def test_report_sections(self):
        result = ValidationResult()
        result.add_error("Missing required field: info", path="/info", keyword="required")
        result.add_warning("Tags array is empty", path="/tags", suggestion="Add tags")

        report = generate_report(result)
        assert "Status: INVALID" in report
        assert "ERRORS (1):" in report
        assert "1. Missing required field: info\n   Path: /info\n   Keyword: required" in report
        assert "WARNINGS (1):" in report
        assert "1. Tags array is empty\n   Path: /tags\n   Suggestion: Add tags" in report
        assert "No errors or warnings found!" not in report
