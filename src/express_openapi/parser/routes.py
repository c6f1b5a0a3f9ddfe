"""Express route extractor.

Parses one JavaScript/TypeScript file and recovers every
``router.<method>(path, ...middlewares, handler)`` registration as a
RouteRecord. Extraction never raises: a file that does not parse yields
no routes, and a call that cannot be understood is skipped.
"""

import re

import click
from tree_sitter import Node

from express_openapi.parser.ast_match import (
    RouteCall,
    SourceParseError,
    is_function,
    match_body_access,
    match_body_destructure,
    match_query_access,
    match_response_call,
    match_route_call,
    node_text,
    parse_source,
    string_value,
    walk,
)
from express_openapi.parser.base import (
    ANONYMOUS_HANDLER,
    INLINE_HANDLER,
    MiddlewareRecord,
    ParameterRecord,
    ResponseRecord,
    RouteRecord,
)

PATH_PARAM_RE = re.compile(r":([a-zA-Z_][a-zA-Z0-9_]*)(\?)?")

STATUS_DESCRIPTIONS = {
    200: "Success",
    201: "Created",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
}

CONTENT_TYPES = {"json": "application/json", "send": "text/plain"}

LITERAL_TYPES = {
    "array": "array",
    "number": "number",
    "string": "string",
    "true": "boolean",
    "false": "boolean",
}


def extract_routes(source: str, file_path: str) -> list[RouteRecord]:
    """Extract all route registrations from a source file."""
    try:
        root = parse_source(source)
    except SourceParseError as e:
        click.echo(f"  Could not parse {file_path}: {e}", err=True)
        return []

    calls: list[RouteCall] = []
    walk(root, [(match_route_call, calls.append)])

    routes = []
    for call in calls:
        try:
            route = _build_route(call, file_path)
        except Exception as e:
            line = call.node.start_point[0] + 1
            click.echo(f"  Skipped route at {file_path}:{line}: {e}", err=True)
            continue
        if route is not None:
            routes.append(route)
    return routes


def extract_path_parameters(path: str) -> list[ParameterRecord]:
    """Path parameters from ``:name`` / ``:name?`` tokens, left to right."""
    params = []
    seen = set()
    for match in PATH_PARAM_RE.finditer(path):
        name = match.group(1)
        if name in seen:
            continue
        seen.add(name)
        params.append(
            ParameterRecord(
                name=name,
                location="path",
                required=match.group(2) is None,
            )
        )
    return params


def classify_middleware(name: str) -> str:
    lower = name.lower()
    if "auth" in lower or "verify" in lower:
        return "auth"
    if "valid" in lower or "check" in lower:
        return "validation"
    return "custom"


def status_description(status_code: int) -> str:
    return STATUS_DESCRIPTIONS.get(status_code, "Unknown")


def _build_route(call: RouteCall, file_path: str) -> RouteRecord | None:
    if not call.arguments:
        return None
    path = string_value(call.arguments[0])
    if path is None:
        # Dynamic paths (variables, template strings) are not registrations we can document.
        return None

    handler_node = call.arguments[-1]
    query_params: list[ParameterRecord] = []
    body_params: list[ParameterRecord] = []
    responses: list[ResponseRecord] = []

    if handler_node.type == "identifier":
        handler = node_text(handler_node)
    elif is_function(handler_node):
        handler = INLINE_HANDLER
        query_params = _extract_query_parameters(handler_node)
        body_params = _extract_body_parameters(handler_node)
        responses = _extract_responses(handler_node)
    else:
        handler = ANONYMOUS_HANDLER

    return RouteRecord(
        method=call.method,
        path=path,
        handler=handler,
        parameters=extract_path_parameters(path) + query_params + body_params,
        responses=responses,
        middlewares=_extract_middlewares(call.arguments[1:-1]),
        file_path=file_path,
        line_number=call.node.start_point[0] + 1,
    )


def _extract_middlewares(args: list[Node]) -> list[MiddlewareRecord]:
    return [
        MiddlewareRecord(name=node_text(arg), kind=classify_middleware(node_text(arg)))
        for arg in args
        if arg.type == "identifier"
    ]


def _extract_query_parameters(handler: Node) -> list[ParameterRecord]:
    names: list[str] = []

    def add(name: str) -> None:
        if name not in names:
            names.append(name)

    walk(handler, [(match_query_access, add)])
    return [ParameterRecord(name=n, location="query", required=False) for n in names]


def _extract_body_parameters(handler: Node) -> list[ParameterRecord]:
    found: dict[str, bool] = {}

    def add(name: str, required: bool) -> None:
        # First sighting decides required-ness, whichever shape it came from.
        found.setdefault(name, required)

    def on_destructure(match) -> None:
        for name in match.names:
            add(name, True)

    walk(
        handler,
        [
            (match_body_destructure, on_destructure),
            (match_body_access, lambda name: add(name, False)),
        ],
    )
    return [
        ParameterRecord(name=name, location="body", required=required)
        for name, required in found.items()
    ]


def _extract_responses(handler: Node) -> list[ResponseRecord]:
    responses: dict[int, ResponseRecord] = {}

    def on_response(match) -> None:
        status = 200 if match.status_code is None else match.status_code
        if status in responses:
            return
        responses[status] = ResponseRecord(
            status_code=status,
            description=status_description(status),
            content_type=CONTENT_TYPES[match.responder],
            json_schema=infer_schema(match.argument),
        )

    walk(handler, [(match_response_call, on_response)])
    return list(responses.values())


def infer_schema(node: Node | None) -> dict | None:
    """Best-effort schema from an object or array literal."""
    if node is None:
        return None
    if node.type == "array":
        return {"type": "array", "items": {"type": "object"}}
    if node.type != "object":
        return None

    properties = {}
    for entry in node.named_children:
        if entry.type == "shorthand_property_identifier":
            properties[node_text(entry)] = {"type": "unknown"}
        elif entry.type == "pair":
            key = entry.child_by_field_name("key")
            value = entry.child_by_field_name("value")
            if key is None or key.type != "property_identifier":
                continue
            value_type = LITERAL_TYPES.get(value.type, "unknown") if value is not None else "unknown"
            properties[node_text(key)] = {"type": value_type}
    return {"type": "object", "properties": properties}
