"""OpenAPI 3.1 document generator.

Accumulates RouteRecords (and AI-written YAML fragments for them) into a
single OpenAPI document, then finalizes and serializes it.
"""

import copy
import json
import re

import click
import yaml

from express_openapi.parser.base import (
    ANONYMOUS_HANDLER,
    HTTP_METHODS,
    INLINE_HANDLER,
    ParameterRecord,
    RouteRecord,
)

OPENAPI_VERSION = "3.1.0"
DEFAULT_DESCRIPTION = "Auto-generated API documentation"

METHOD_ACTIONS = {
    "GET": "Get",
    "POST": "Create",
    "PUT": "Update",
    "PATCH": "Update",
    "DELETE": "Delete",
    "OPTIONS": "Options",
    "HEAD": "Head",
}

BODY_METHODS = ("POST", "PUT", "PATCH")
OPERATION_KEYS = tuple(m.lower() for m in HTTP_METHODS)

# (required properties, schema name); first match wins.
SCHEMA_NAME_RULES = [
    ({"id", "name", "email"}, "User"),
    ({"id", "name", "price"}, "Product"),
    ({"message"}, "ErrorResponse"),
]

EXPRESS_PARAM_RE = re.compile(r":([a-zA-Z_][a-zA-Z0-9_]*)\??")


class _NoAliasDumper(yaml.SafeDumper):
    def ignore_aliases(self, data):
        return True


def to_openapi_path(express_path: str) -> str:
    """/users/:id -> /users/{id}"""
    return EXPRESS_PARAM_RE.sub(r"{\1}", express_path)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def _message_schema() -> dict:
    return {"type": "object", "properties": {"message": {"type": "string"}}}


class OpenApiGenerator:
    """Builds an OpenAPI document from extracted routes."""

    def __init__(
        self,
        title: str = "REST API Documentation",
        version: str = "1.0.0",
        description: str | None = None,
    ):
        self._document: dict = {
            "openapi": OPENAPI_VERSION,
            "info": {
                "title": title,
                "version": version,
                "description": description or DEFAULT_DESCRIPTION,
            },
            "servers": [{"url": "http://localhost:3000", "description": "Development server"}],
            "paths": {},
            "components": {"schemas": {}},
            "tags": [],
        }

    @property
    def document(self) -> dict:
        return self._document

    # -- adding routes --------------------------------------------------------

    def add_routes(self, routes: list[RouteRecord]) -> None:
        """Add routes, one operation per method, grouped by OpenAPI path."""
        grouped: dict[str, list[RouteRecord]] = {}
        for route in routes:
            grouped.setdefault(to_openapi_path(route.path), []).append(route)

        paths = self._document["paths"]
        for path, path_routes in grouped.items():
            path_item = paths.setdefault(path, {})
            for route in path_routes:
                path_item[route.method.lower()] = self._build_operation(route)

        for route in routes:
            for tag in self._tags_from_path(route.path):
                if tag != "Default":
                    self._add_tag(tag)

    def add_route_with_ai_doc(self, route: RouteRecord, ai_yaml: str) -> None:
        """Merge an AI-written path fragment; fall back to manual synthesis.

        The fragment must be a mapping with a single path key whose value
        maps lowercase HTTP methods to operation objects.
        """
        try:
            path, operations = self._parse_ai_fragment(ai_yaml)
        except ValueError as e:
            click.echo(f"  Unusable AI output for {route.method} {route.path} ({e}), using fallback", err=True)
            self.add_routes([route])
            return

        self._document["paths"].setdefault(path, {}).update(operations)
        for operation in operations.values():
            tags = operation.get("tags")
            if isinstance(tags, list):
                for tag in tags:
                    if isinstance(tag, str):
                        self._add_tag(tag)

    def _parse_ai_fragment(self, ai_yaml: str) -> tuple[str, dict]:
        try:
            data = yaml.safe_load(ai_yaml)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e

        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError("expected a single path mapping")
        path, operations = next(iter(data.items()))
        if not isinstance(path, str) or not isinstance(operations, dict) or not operations:
            raise ValueError("expected a path mapped to operations")
        for method, operation in operations.items():
            if method not in OPERATION_KEYS or not isinstance(operation, dict):
                raise ValueError(f"unexpected operation key {method!r}")
            # Unquoted status codes load as ints; response keys must be strings.
            responses = operation.get("responses")
            if isinstance(responses, dict):
                operation["responses"] = {str(code): value for code, value in responses.items()}
        return to_openapi_path(path), operations

    # -- operation synthesis --------------------------------------------------

    def _build_operation(self, route: RouteRecord) -> dict:
        operation = {
            "summary": f"{METHOD_ACTIONS[route.method]} {self._resource(route.path)}",
            "description": route.description or f"{route.method} operation for {route.path}",
            "operationId": self._operation_id(route),
            "tags": self._tags_from_path(route.path),
            "parameters": self._build_parameters(route),
            "responses": self._build_responses(route),
        }

        if route.method in BODY_METHODS:
            body_params = route.parameters_in("body")
            if body_params:
                operation["requestBody"] = self._build_request_body(body_params)

        return operation

    def _resource(self, path: str) -> str:
        first = path.lstrip("/").split("/")[0]
        return _capitalize(first or "resource")

    def _operation_id(self, route: RouteRecord) -> str:
        if route.handler not in (ANONYMOUS_HANDLER, INLINE_HANDLER):
            return route.handler
        op_id = f"{route.method.lower()}{self._resource(route.path)}"
        if ":" in route.path:
            op_id += "ById"
        return op_id

    def _tags_from_path(self, path: str) -> list[str]:
        segments = [
            s for s in path.lstrip("/").split("/")
            if s and not s.startswith((":", "{"))
        ]
        if not segments:
            return ["Default"]
        return [_capitalize(segments[0])]

    def _build_parameters(self, route: RouteRecord) -> list[dict]:
        return [
            {
                "name": p.name,
                "in": p.location,
                "description": p.description or f"{p.name} parameter",
                "required": p.required,
                "schema": {"type": p.data_type or "string"},
            }
            for p in route.parameters
            if p.location in ("path", "query")
        ]

    def _build_request_body(self, body_params: list[ParameterRecord]) -> dict:
        properties = {}
        required = []
        for p in body_params:
            prop = {"type": p.data_type or "string"}
            if p.description:
                prop["description"] = p.description
            properties[p.name] = prop
            if p.required:
                required.append(p.name)

        schema: dict = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return {
            "description": "Request body",
            "required": bool(required),
            "content": {"application/json": {"schema": schema}},
        }

    def _build_responses(self, route: RouteRecord) -> dict:
        responses = {}
        for r in route.responses:
            entry: dict = {"description": r.description}
            if r.content_type:
                schema = copy.deepcopy(r.json_schema) if r.json_schema else _message_schema()
                entry["content"] = {r.content_type: {"schema": schema}}
            responses[str(r.status_code)] = entry

        if "200" not in responses:
            responses["200"] = {
                "description": "Successful response",
                "content": {"application/json": {"schema": {"type": "object"}}},
            }
        return responses

    def _add_tag(self, name: str) -> None:
        if any(t["name"] == name for t in self._document["tags"]):
            return
        self._document["tags"].append({"name": name, "description": f"{name} related endpoints"})

    # -- finalization ---------------------------------------------------------

    def extract_schemas_to_components(self) -> None:
        """Copy recognizable response schemas into components.schemas."""
        components = self._document.setdefault("components", {})
        schemas = components.setdefault("schemas", {})

        for path_item in self._document["paths"].values():
            if not isinstance(path_item, dict):
                continue
            for operation in path_item.values():
                if not isinstance(operation, dict):
                    continue
                for response in (operation.get("responses") or {}).values():
                    if not isinstance(response, dict):
                        continue
                    for media in (response.get("content") or {}).values():
                        schema = media.get("schema") if isinstance(media, dict) else None
                        if not isinstance(schema, dict) or schema.get("type") != "object":
                            continue
                        name = schema_name(schema)
                        if name and name not in schemas:
                            schemas[name] = copy.deepcopy(schema)

    def finalize_document(self) -> None:
        self.extract_schemas_to_components()
        if not self._document.get("tags"):
            self._document["tags"] = [{"name": "Default", "description": "API endpoints"}]

    # -- document settings & output -------------------------------------------

    def set_server(self, url: str, description: str | None = None) -> None:
        self._document["servers"] = [{"url": url, "description": description or "API Server"}]

    def set_info(self, title: str, version: str, description: str | None = None) -> None:
        self._document["info"] = {
            "title": title,
            "version": version,
            "description": description or DEFAULT_DESCRIPTION,
        }

    def to_yaml(self) -> str:
        return yaml.dump(
            self._document,
            Dumper=_NoAliasDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )

    def to_json(self) -> str:
        return json.dumps(self._document, indent=2, ensure_ascii=False)


def schema_name(schema: dict) -> str | None:
    """Canonical component name for an object schema, by property set."""
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return None
    keys = set(properties)
    for required_keys, name in SCHEMA_NAME_RULES:
        if required_keys <= keys:
            return name
    return None
