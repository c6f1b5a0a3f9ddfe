"""Documentation pipeline: routes -> OpenAPI document -> files on disk."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

import click

from express_openapi.generator.openapi import OpenApiGenerator
from express_openapi.generator.validator import ValidationResult, generate_report, validate_document
from express_openapi.llm import CompletionError, LlmClient
from express_openapi.parser.base import RouteRecord

DEFAULT_SERVER = "http://localhost:3000"
AI_CALL_DELAY = 0.5

YAML_FILENAME = "openapi.yaml"
JSON_FILENAME = "openapi.json"
REPORT_FILENAME = "validation-report.txt"


class GenerationCancelled(Exception):
    """The caller asked to stop an AI generation run between routes."""


def build_quick_document(
    routes: list[RouteRecord],
    title: str = "REST API Documentation",
    version: str = "1.0.0",
    server_url: str = DEFAULT_SERVER,
) -> OpenApiGenerator:
    """Document routes from extracted structure only, without a model."""
    generator = OpenApiGenerator(title, version)
    generator.add_routes(routes)
    generator.finalize_document()
    generator.set_server(server_url, "Development server")
    return generator


async def build_ai_document(
    routes: list[RouteRecord],
    client: LlmClient,
    title: str = "REST API Documentation",
    version: str = "1.0.0",
    server_url: str = DEFAULT_SERVER,
    is_cancelled: Callable[[], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> OpenApiGenerator:
    """Document routes one by one with the model, falling back per route.

    ``is_cancelled`` is polled before each model call; when it returns
    True the run stops with GenerationCancelled.
    """
    generator = OpenApiGenerator(title, version, "Auto-generated API documentation using AI")
    total = len(routes)

    for i, route in enumerate(routes, start=1):
        if is_cancelled is not None and is_cancelled():
            raise GenerationCancelled(f"Generation cancelled after {i - 1} of {total} routes")

        click.echo(f"Processing route {i}/{total}: {route.method} {route.path}")
        try:
            ai_doc = await client.generate_documentation(route)
        except CompletionError as e:
            click.echo(f"  Failed to generate AI docs for {route.method} {route.path} ({e}), using fallback", err=True)
            generator.add_routes([route])
            continue

        generator.add_route_with_ai_doc(route, ai_doc)
        if i < total:
            # Spread calls out to stay under free-tier rate limits.
            await sleep(AI_CALL_DELAY)

    generator.finalize_document()
    generator.set_server(server_url, "Development server")
    return generator


def write_artifacts(
    generator: OpenApiGenerator,
    output_dir: Path,
    validate: bool = True,
) -> tuple[dict[str, Path], ValidationResult | None]:
    """Write YAML + JSON (and optionally a validation report) to output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = {
        YAML_FILENAME: output_dir / YAML_FILENAME,
        JSON_FILENAME: output_dir / JSON_FILENAME,
    }
    written[YAML_FILENAME].write_text(generator.to_yaml(), encoding="utf-8")
    written[JSON_FILENAME].write_text(generator.to_json(), encoding="utf-8")

    result = None
    if validate:
        result = validate_document(generator.document)
        written[REPORT_FILENAME] = output_dir / REPORT_FILENAME
        written[REPORT_FILENAME].write_text(generate_report(result), encoding="utf-8")
    return written, result
