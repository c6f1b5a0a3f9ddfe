"""Prompt construction for the documentation model, and clean-up of its replies."""

import re

from pydantic import BaseModel

from express_openapi.parser.base import RouteRecord

MIN_RESPONSE_LENGTH = 10

SYSTEM_CONTEXT = (
    "You are an expert API documentation assistant specialized in generating "
    "OpenAPI 3.1 specifications from Express.js code."
)

TASK_INSTRUCTION = (
    "TASK: Generate accurate OpenAPI 3.1 documentation for the following "
    "Express.js REST API endpoint(s)."
)

FEW_SHOT_EXAMPLE = """EXAMPLE OUTPUT FORMAT:

```yaml
/users/{id}:
  get:
    summary: Get user by ID
    description: Retrieve detailed information about a specific user
    operationId: getUserById
    tags:
      - Users
    parameters:
      - name: id
        in: path
        required: true
        description: User ID
        schema:
          type: string
    responses:
      '200':
        description: Successful response
        content:
          application/json:
            schema:
              type: object
              properties:
                id:
                  type: string
                name:
                  type: string
                email:
                  type: string
      '404':
        description: User not found
        content:
          application/json:
            schema:
              type: object
              properties:
                message:
                  type: string
```"""

OUTPUT_FORMAT = """REQUIREMENTS:
1. Generate ONLY the OpenAPI path object in YAML format
2. Include accurate parameter definitions with proper types
3. Include all relevant response status codes (200, 201, 400, 401, 404, 500, etc.)
4. Add clear descriptions for the endpoint and parameters
5. Use proper OpenAPI 3.1 schema definitions
6. Do NOT include any explanations, just the YAML content
7. Ensure valid YAML syntax

OUTPUT (YAML only):"""

TEST_PROMPT = """You are an API documentation expert.

Generate OpenAPI 3.1 documentation for this Express route:

METHOD: GET
PATH: /users/:id
PARAMETERS:
  Path: id (string)
RESPONSES:
  200: Success
  404: Not Found

Output only valid OpenAPI 3.1 YAML for this path, no explanations."""

OPENING_FENCE_RE = re.compile(r"^```(?:ya?ml)?[ \t]*\n?", re.IGNORECASE)
CLOSING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*$")


class PromptCheck(BaseModel):
    """Outcome of the YAML-shape heuristic on a model reply."""

    is_valid: bool
    errors: list[str]


def build_route_prompt(route: RouteRecord, code_snippet: str | None = None) -> str:
    """Prompt asking for the OpenAPI path object of one route."""
    sections = [SYSTEM_CONTEXT, TASK_INSTRUCTION, _route_information(route)]
    if code_snippet:
        sections.append(f"CODE SNIPPET:\n```javascript\n{code_snippet}\n```")
    sections += [FEW_SHOT_EXAMPLE, OUTPUT_FORMAT]
    return "\n\n".join(sections)


def build_multiple_routes_prompt(routes: list[RouteRecord]) -> str:
    routes_info = "\n\n".join(
        f"Route {i}:\n{_route_information(route)}" for i, route in enumerate(routes, start=1)
    )
    return "\n\n".join([SYSTEM_CONTEXT, TASK_INSTRUCTION, routes_info, FEW_SHOT_EXAMPLE, OUTPUT_FORMAT])


def build_test_prompt() -> str:
    return TEST_PROMPT


def _route_information(route: RouteRecord) -> str:
    lines = [f"METHOD: {route.method}", f"PATH: {route.path}"]

    if route.parameters:
        lines.append("PARAMETERS:")
        for label, location in (("Path", "path"), ("Query", "query"), ("Body", "body")):
            params = route.parameters_in(location)
            if params:
                listed = ", ".join(f"{p.name} ({p.data_type})" for p in params)
                lines.append(f"  {label}: {listed}")

    if route.middlewares:
        lines.append(f"MIDDLEWARES: {', '.join(m.name for m in route.middlewares)}")

    if route.responses:
        lines.append("RESPONSES:")
        lines.extend(f"  {r.status_code}: {r.description}" for r in route.responses)

    return "\n".join(lines)


def extract_yaml(response: str) -> str:
    """Strip surrounding Markdown code fences (```yaml / ```yml / ```).

    Repeats until the text stops changing; each changing pass shortens it.
    """
    text = response.strip()
    while True:
        stripped = OPENING_FENCE_RE.sub("", text, count=1)
        stripped = CLOSING_FENCE_RE.sub("", stripped, count=1).strip()
        if stripped == text:
            return text
        text = stripped


def validate_response(response: str) -> PromptCheck:
    """Cheap check that a reply looks like an OpenAPI YAML fragment."""
    errors = []
    if ":" not in response or len(response.strip()) < MIN_RESPONSE_LENGTH:
        errors.append("Response does not appear to be valid YAML")
    if "summary:" not in response and "responses:" not in response:
        errors.append("Response missing required OpenAPI fields (summary, responses)")
    return PromptCheck(is_valid=not errors, errors=errors)
