"""Structural matching over tree-sitter syntax trees.

Each ``match_*`` function is a pure predicate: it looks at one node and
returns a small typed match when the node has the Express shape it knows
about, or ``None`` otherwise. :func:`walk` runs a list of
``(predicate, handler)`` rules over every node of a tree in source order.
"""

from functools import cache
from typing import Any, Callable, NamedTuple

import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser

from express_openapi.parser.base import HTTP_METHODS

ROUTER_OBJECTS = ("router", "app")
RESPONDERS = ("json", "send")
FUNCTION_NODES = ("arrow_function", "function_expression", "function")

Rule = tuple[Callable[[Node], Any], Callable[[Any], None]]


class SourceParseError(Exception):
    """Raised when a source file cannot be turned into a clean syntax tree."""


class RouteCall(NamedTuple):
    node: Node
    method: str
    arguments: list[Node]


class BodyDestructure(NamedTuple):
    names: list[str]


class ResponseCall(NamedTuple):
    status_code: int | None  # None for bare res.json / res.send
    responder: str
    argument: Node | None


@cache
def _get_parser() -> Parser:
    # The TSX grammar accepts plain JavaScript, type annotations and JSX.
    return Parser(Language(tstypescript.language_tsx()))


def parse_source(source: str) -> Node:
    """Parse JavaScript/TypeScript source and return the root node."""
    tree = _get_parser().parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        line = _first_error_line(root)
        raise SourceParseError(f"syntax error near line {line}")
    return root


def _first_error_line(root: Node) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        stack.extend(reversed(node.children))
    return root.start_point[0] + 1


def walk(root: Node, rules: list[Rule]) -> None:
    """Visit every node below ``root`` (inclusive) in pre-order.

    For each node every rule's predicate is tried; a non-None match is
    passed to that rule's handler.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        for predicate, handler in rules:
            match = predicate(node)
            if match is not None:
                handler(match)
        stack.extend(reversed(node.children))


# -- node helpers -------------------------------------------------------------


def node_text(node: Node) -> str:
    return node.text.decode("utf-8")


def call_arguments(call: Node) -> list[Node]:
    """Argument nodes of a call expression, without comments."""
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


def string_value(node: Node) -> str | None:
    """Value of a plain quoted string literal, else None."""
    if node.type != "string":
        return None
    return node_text(node)[1:-1]


def int_value(node: Node) -> int | None:
    if node.type != "number":
        return None
    try:
        return int(node_text(node))
    except ValueError:
        return None


def is_identifier(node: Node | None, name: str | None = None) -> bool:
    if node is None or node.type != "identifier":
        return False
    return name is None or node_text(node) == name


def is_function(node: Node) -> bool:
    return node.type in FUNCTION_NODES


def _member_parts(node: Node) -> tuple[Node, str] | None:
    """Split ``obj.prop`` into (obj node, prop name)."""
    if node.type != "member_expression":
        return None
    obj = node.child_by_field_name("object")
    prop = node.child_by_field_name("property")
    if obj is None or prop is None or prop.type != "property_identifier":
        return None
    return obj, node_text(prop)


# -- predicates ---------------------------------------------------------------


def match_route_call(node: Node) -> RouteCall | None:
    """``router.<method>(...)`` or ``app.<method>(...)``."""
    if node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    parts = _member_parts(callee) if callee is not None else None
    if parts is None:
        return None
    obj, prop = parts
    if obj.type != "identifier" or node_text(obj) not in ROUTER_OBJECTS:
        return None
    method = prop.upper()
    if method not in HTTP_METHODS:
        return None
    return RouteCall(node=node, method=method, arguments=call_arguments(node))


def _match_req_member(node: Node, section: str) -> str | None:
    parts = _member_parts(node)
    if parts is None:
        return None
    obj, name = parts
    inner = _member_parts(obj)
    if inner is None:
        return None
    root, middle = inner
    if middle != section or not is_identifier(root, "req"):
        return None
    return name


def match_query_access(node: Node) -> str | None:
    """``req.query.<name>``; returns the name."""
    return _match_req_member(node, "query")


def match_body_access(node: Node) -> str | None:
    """``req.body.<name>``; returns the name."""
    return _match_req_member(node, "body")


def match_body_destructure(node: Node) -> BodyDestructure | None:
    """``const { a, b } = req.body``; returns the destructured keys."""
    if node.type != "variable_declarator":
        return None
    pattern = node.child_by_field_name("name")
    value = node.child_by_field_name("value")
    if pattern is None or value is None or pattern.type != "object_pattern":
        return None
    parts = _member_parts(value)
    if parts is None:
        return None
    obj, prop = parts
    if prop != "body" or not is_identifier(obj, "req"):
        return None

    names = []
    for entry in pattern.named_children:
        if entry.type == "shorthand_property_identifier_pattern":
            names.append(node_text(entry))
        elif entry.type == "pair_pattern":
            key = entry.child_by_field_name("key")
            if key is not None and key.type == "property_identifier":
                names.append(node_text(key))
        elif entry.type == "object_assignment_pattern":
            left = entry.child_by_field_name("left")
            if left is not None and left.type == "shorthand_property_identifier_pattern":
                names.append(node_text(left))
    return BodyDestructure(names=names)


def match_response_call(node: Node) -> ResponseCall | None:
    """``res.status(<int>).json|send(...)`` or bare ``res.json|send(...)``."""
    if node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    parts = _member_parts(callee) if callee is not None else None
    if parts is None:
        return None
    obj, responder = parts
    if responder not in RESPONDERS:
        return None

    args = call_arguments(node)
    argument = args[0] if args else None

    if is_identifier(obj, "res"):
        return ResponseCall(status_code=None, responder=responder, argument=argument)

    if obj.type != "call_expression":
        return None
    status_callee = obj.child_by_field_name("function")
    status_parts = _member_parts(status_callee) if status_callee is not None else None
    if status_parts is None:
        return None
    status_obj, status_prop = status_parts
    if status_prop != "status" or not is_identifier(status_obj, "res"):
        return None
    status_args = call_arguments(obj)
    status_code = int_value(status_args[0]) if status_args else None
    if status_code is None:
        return None
    return ResponseCall(status_code=status_code, responder=responder, argument=argument)
