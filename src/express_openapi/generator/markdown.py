"""Render a finished OpenAPI document as human-readable Markdown."""

from datetime import datetime, timezone

MARKDOWN_METHODS = ("get", "post", "put", "delete", "patch")


def to_markdown(document: dict, generated_at: datetime | None = None) -> str:
    info = document.get("info") or {}
    lines = [f"# {info.get('title') or 'API Documentation'}", ""]
    if info.get("description"):
        lines += [info["description"], ""]
    lines += [f"**Version:** {info.get('version') or '1.0.0'}", ""]

    servers = document.get("servers") or []
    if servers:
        lines += ["## Servers", ""]
        lines += [f"- **{s.get('description') or 'Server'}:** `{s.get('url')}`" for s in servers]
        lines.append("")

    tags = document.get("tags") or []
    if tags:
        lines += ["## Tags", ""]
        lines += [f"- **{t.get('name')}** - {t.get('description') or ''}" for t in tags]
        lines.append("")

    lines += ["## Endpoints", ""]
    for path, path_item in (document.get("paths") or {}).items():
        for method in MARKDOWN_METHODS:
            operation = path_item.get(method)
            if operation:
                lines += _render_operation(path, method, operation)

    stamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    lines += ["", "---", "*Auto-generated by express-openapi*", f"*Generated on: {stamp}*"]
    return "\n".join(lines) + "\n"


def _render_operation(path: str, method: str, operation: dict) -> list[str]:
    lines = [f"### `{method.upper()}` {path}", ""]
    if operation.get("summary"):
        lines += [f"**{operation['summary']}**", ""]
    if operation.get("description"):
        lines += [operation["description"], ""]
    if operation.get("tags"):
        lines += ["**Tags:** " + ", ".join(f"`{t}`" for t in operation["tags"]), ""]

    params = operation.get("parameters") or []
    if params:
        lines += [
            "#### Parameters",
            "",
            "| Name | In | Type | Required | Description |",
            "|------|-----|------|----------|-------------|",
        ]
        for p in params:
            param_type = (p.get("schema") or {}).get("type", "string")
            required = "yes" if p.get("required") else "no"
            lines.append(f"| {p.get('name')} | {p.get('in')} | {param_type} | {required} | {p.get('description') or '-'} |")
        lines.append("")

    body_schema = _json_schema(operation.get("requestBody"))
    if body_schema and body_schema.get("properties"):
        required_fields = body_schema.get("required") or []
        lines += [
            "#### Request Body",
            "",
            "| Field | Type | Required | Description |",
            "|-------|------|----------|-------------|",
        ]
        for name, prop in body_schema["properties"].items():
            required = "yes" if name in required_fields else "no"
            lines.append(f"| {name} | {prop.get('type', 'string')} | {required} | {prop.get('description') or '-'} |")
        lines.append("")

    responses = operation.get("responses") or {}
    if responses:
        lines += ["#### Responses", ""]
        for code, response in responses.items():
            lines += [f"**{code}** - {response.get('description') or ''}", ""]
            schema = _json_schema(response)
            if schema and schema.get("properties"):
                lines.append("```json")
                lines.append("{")
                lines += [f'  "{name}": "{prop.get("type", "string")}"' for name, prop in schema["properties"].items()]
                lines += ["}", "```", ""]

    lines += ["---", ""]
    return lines


def _json_schema(holder: dict | None) -> dict | None:
    if not isinstance(holder, dict):
        return None
    media = (holder.get("content") or {}).get("application/json")
    if not isinstance(media, dict):
        return None
    schema = media.get("schema")
    return schema if isinstance(schema, dict) else None
