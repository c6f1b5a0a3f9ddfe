"""CLI entry point for express-openapi."""

import asyncio
from pathlib import Path

import click

from express_openapi.generator.markdown import to_markdown
from express_openapi.generator.validator import DocumentLoadError, generate_report, load_document, validate_document
from express_openapi.llm import LlmClient
from express_openapi.parser.base import RouteRecord
from express_openapi.parser.detect import read_file, scan_routes
from express_openapi.parser.routes import extract_routes
from express_openapi.pipeline import DEFAULT_SERVER, build_ai_document, build_quick_document, write_artifacts


def _collect_routes(root: Path, source_file: Path | None) -> list[RouteRecord]:
    """Routes from a single file, or from every route file under root."""
    if source_file is not None:
        click.echo(f"Parsing {source_file}...")
        return extract_routes(read_file(source_file), str(source_file))

    click.echo(f"Scanning {root} for route files...")
    result = scan_routes(root)
    click.echo(f"Found {result.total_routes} routes in {result.total_files} files.")
    for error in result.errors:
        click.echo(f"  {error.file_path}: {error.message}", err=True)
    return result.routes


@click.group()
def main():
    """Express OpenAPI: generate OpenAPI 3.1 docs from Express route files."""
    pass


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
def scan(root: Path):
    """List the routes found under a project directory."""
    routes = _collect_routes(root, None)
    for route in routes:
        middlewares = ", ".join(m.name for m in route.middlewares)
        suffix = f"  [{middlewares}]" if middlewares else ""
        click.echo(f"  {route.method:7} {route.path}  ({route.file_path}:{route.line_number}){suffix}")


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(file_okay=False, path_type=Path), help="Output directory for openapi.yaml / openapi.json.")
@click.option("--file", "source_file", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Document a single source file instead of scanning.")
@click.option("--ai/--no-ai", default=False, help="Let the language model write each operation.")
@click.option("--title", default="REST API Documentation", help="API title.")
@click.option("--api-version", default="1.0.0", help="API version.")
@click.option("--server", default=DEFAULT_SERVER, help="Server URL.")
@click.option("--api-key", envvar="OPENROUTER_API_KEY", default=None, help="Completion service API key.")
@click.option("--model", envvar="EXPRESS_OPENAPI_MODEL", default=None, help="LLM model to use.")
@click.option("--validate/--no-validate", default=True, help="Also write a validation report.")
def generate(
    root: Path,
    output: Path,
    source_file: Path | None,
    ai: bool,
    title: str,
    api_version: str,
    server: str,
    api_key: str | None,
    model: str | None,
    validate: bool,
):
    """Generate OpenAPI documentation for an Express project."""
    routes = _collect_routes(root, source_file)
    if not routes:
        raise click.ClickException("No routes found to document")

    if ai:
        if not api_key:
            raise click.ClickException("An API key is required for --ai (use --api-key or OPENROUTER_API_KEY)")
        click.echo(f"Generating documentation with {model or 'the default model'}...")
        client = LlmClient(api_key=api_key, model=model)
        generator = asyncio.run(build_ai_document(routes, client, title, api_version, server))
    else:
        click.echo("Generating documentation (no AI)...")
        generator = build_quick_document(routes, title, api_version, server)

    written, result = write_artifacts(generator, output, validate=validate)
    for path in written.values():
        click.echo(f"  Created {path}")
    if result is not None:
        status = "valid" if result.is_valid else "INVALID"
        click.echo(f"Document is {status} ({len(result.errors)} errors, {len(result.warnings)} warnings).")


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Write the report to a file instead of stdout.")
def validate(doc_path: Path, output: Path | None):
    """Validate an OpenAPI YAML/JSON file."""
    try:
        document = load_document(doc_path)
    except DocumentLoadError as e:
        raise click.ClickException(str(e)) from e

    result = validate_document(document)
    report = generate_report(result)
    if output is None:
        click.echo(report)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(report, encoding="utf-8")
        click.echo(f"Report saved to {output}")

    if not result.is_valid:
        raise SystemExit(1)


@main.command("export-md")
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(dir_okay=False, path_type=Path), help="Output Markdown file.")
def export_md(doc_path: Path, output: Path):
    """Convert an OpenAPI document to Markdown."""
    try:
        document = load_document(doc_path)
    except DocumentLoadError as e:
        raise click.ClickException(str(e)) from e

    for field in ("openapi", "info", "paths"):
        if field not in document:
            raise click.ClickException(f"Invalid OpenAPI document. Missing required field: {field}")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(to_markdown(document), encoding="utf-8")
    click.echo(f"Exported Markdown to {output}")


@main.command("test-connection")
@click.option("--api-key", envvar="OPENROUTER_API_KEY", required=True, help="Completion service API key.")
@click.option("--model", envvar="EXPRESS_OPENAPI_MODEL", default=None, help="LLM model to use.")
def test_connection(api_key: str, model: str | None):
    """Check that the completion service answers."""
    client = LlmClient(api_key=api_key, model=model)
    click.echo(f"Testing connection to {client.model}...")
    if not asyncio.run(client.test_connection()):
        raise click.ClickException("Connection test failed")
    click.echo("Connection test successful!")
