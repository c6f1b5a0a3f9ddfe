"""Validates OpenAPI documents for schema correctness and API-design hygiene."""

import json
from pathlib import Path

import click
import yaml
from openapi_spec_validator import OpenAPIV30SpecValidator, OpenAPIV31SpecValidator
from pydantic import BaseModel

OPERATION_METHODS = ("get", "post", "put", "delete", "patch", "options", "head")
RULE = "=" * 60
DIVIDER = "-" * 60


class ValidationIssue(BaseModel):
    """An error: the document is not a valid OpenAPI document."""

    message: str
    path: str | None = None
    keyword: str | None = None


class ValidationWarning(BaseModel):
    """A best-practice problem that does not make the document invalid."""

    message: str
    path: str | None = None
    suggestion: str | None = None


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: list[ValidationIssue] = []
    warnings: list[ValidationWarning] = []

    def add_error(self, message: str, path: str | None = None, keyword: str | None = None) -> None:
        self.errors.append(ValidationIssue(message=message, path=path, keyword=keyword))
        self.is_valid = False

    def add_warning(self, message: str, path: str | None = None, suggestion: str | None = None) -> None:
        self.warnings.append(ValidationWarning(message=message, path=path, suggestion=suggestion))


class DocumentLoadError(Exception):
    """An OpenAPI file could not be read or is not an OpenAPI document."""


def validate_document(document: dict) -> ValidationResult:
    """Validate an OpenAPI document. Never raises.

    Structural errors come from openapi-spec-validator; the custom checks
    add required-field errors and design warnings on top.
    """
    result = ValidationResult()
    try:
        _check_schema(document, result)
        _check_document(document, result)
    except Exception as e:
        click.echo(f"  Validation failed: {e}", err=True)
        return ValidationResult(
            is_valid=False,
            errors=[ValidationIssue(message=f"Validation exception: {e}")],
        )

    if result.errors or result.warnings:
        click.echo(f"  Found {len(result.errors)} errors and {len(result.warnings)} warnings")
    return result


def _check_schema(document: dict, result: ValidationResult) -> None:
    """Structural pass; a crash inside the spec validator is recorded as one error."""
    try:
        version = str(document.get("openapi", ""))
        validator_cls = OpenAPIV30SpecValidator if version.startswith("3.0") else OpenAPIV31SpecValidator
        for error in validator_cls(document).iter_errors():
            location = "/" + "/".join(str(p) for p in error.absolute_path)
            keyword = error.validator if isinstance(error.validator, str) else None
            result.add_error(error.message or "Validation error", path=location, keyword=keyword)
    except Exception as e:
        result.add_error(f"Schema validation could not complete: {e!r}")


def _check_document(document: dict, result: ValidationResult) -> None:
    openapi = document.get("openapi")
    if not isinstance(openapi, str) or not openapi.startswith("3."):
        result.add_warning("OpenAPI version should be 3.x", path="/openapi")

    info = document.get("info")
    if not info:
        result.add_error("Missing required field: info", path="/info")
    else:
        if not info.get("title"):
            result.add_error("Missing required field: info.title", path="/info/title")
        if not info.get("version"):
            result.add_error("Missing required field: info.version", path="/info/version")

    paths = document.get("paths")
    if not paths:
        result.add_warning(
            "No paths defined in the document",
            path="/paths",
            suggestion="Add at least one API endpoint",
        )
    else:
        _check_paths(paths, result)

    tags = document.get("tags")
    if tags is not None and len(tags) == 0:
        result.add_warning(
            "Tags array is empty",
            path="/tags",
            suggestion="Add tags to organize your API endpoints",
        )

    schemas = (document.get("components") or {}).get("schemas")
    if schemas is not None and len(schemas) == 0:
        result.add_warning(
            "No reusable schemas defined in components",
            path="/components/schemas",
            suggestion="Consider extracting common schemas to components for reusability",
        )


def _check_paths(paths: dict, result: ValidationResult) -> None:
    for path, path_item in paths.items():
        if not str(path).startswith("/"):
            result.add_warning(f"Path should start with /: {path}", path=f"/paths/{path}")
        if not isinstance(path_item, dict):
            continue
        for method in OPERATION_METHODS:
            if path_item.get(method):
                _check_operation(path_item[method], f"{path}.{method}", result)


def _check_operation(operation: dict, op_path: str, result: ValidationResult) -> None:
    if not operation.get("summary") and not operation.get("description"):
        result.add_warning(
            f"Operation should have summary or description: {op_path}",
            path=f"/paths/{op_path}",
            suggestion="Add summary or description to document the endpoint",
        )

    responses = operation.get("responses")
    if not responses:
        result.add_error(
            f"Operation must have at least one response: {op_path}",
            path=f"/paths/{op_path}/responses",
        )
    elif not any(str(code).startswith("2") or str(code) == "default" for code in responses):
        result.add_warning(
            f"Operation should have at least one success response (2xx): {op_path}",
            path=f"/paths/{op_path}/responses",
            suggestion="Add a 200 or 201 response",
        )

    for index, param in enumerate(operation.get("parameters") or []):
        location = f"/paths/{op_path}/parameters/{index}"
        if not param.get("name"):
            result.add_error(f"Parameter missing name: {op_path}", path=location)
        if not param.get("in"):
            result.add_error(f"Parameter missing 'in' field: {op_path}", path=location)
        if not param.get("schema") and not param.get("content"):
            result.add_error(f"Parameter must have schema or content: {op_path}", path=location)


def load_document(file_path: Path) -> dict:
    """Load an OpenAPI document from a .yaml/.yml/.json file."""
    try:
        text = file_path.read_text(encoding="utf-8")
        if file_path.suffix in (".yaml", ".yml"):
            document = yaml.safe_load(text)
        elif file_path.suffix == ".json":
            document = json.loads(text)
        else:
            raise DocumentLoadError("Unsupported file format. Use .yaml, .yml, or .json")
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise DocumentLoadError(f"Failed to read {file_path}: {e}") from e

    if not isinstance(document, dict):
        raise DocumentLoadError(f"{file_path} does not contain a mapping")
    return document


def validate_file(file_path: Path) -> ValidationResult:
    """Validate an OpenAPI YAML or JSON file."""
    try:
        document = load_document(file_path)
    except DocumentLoadError as e:
        return ValidationResult(
            is_valid=False,
            errors=[ValidationIssue(message=f"Failed to validate file: {e}")],
        )
    return validate_document(document)


def generate_report(result: ValidationResult) -> str:
    """Render a validation result as a plain-text report."""
    lines = [RULE, "OPENAPI VALIDATION REPORT", RULE, ""]
    lines += [f"Status: {'VALID' if result.is_valid else 'INVALID'}", ""]

    if result.errors:
        lines += [f"ERRORS ({len(result.errors)}):", DIVIDER]
        for i, error in enumerate(result.errors, start=1):
            lines.append(f"{i}. {error.message}")
            if error.path:
                lines.append(f"   Path: {error.path}")
            if error.keyword:
                lines.append(f"   Keyword: {error.keyword}")
            lines.append("")

    if result.warnings:
        lines += [f"WARNINGS ({len(result.warnings)}):", DIVIDER]
        for i, warning in enumerate(result.warnings, start=1):
            lines.append(f"{i}. {warning.message}")
            if warning.path:
                lines.append(f"   Path: {warning.path}")
            if warning.suggestion:
                lines.append(f"   Suggestion: {warning.suggestion}")
            lines.append("")

    if not result.errors and not result.warnings:
        lines += ["No errors or warnings found!", "Your OpenAPI document is perfectly valid.", ""]

    lines.append(RULE)
    return "\n".join(lines) + "\n"
