"""Locate Express route files in a project and scan them for routes."""

import re
from pathlib import Path

import click

from express_openapi.parser.base import ScanError, ScanResult
from express_openapi.parser.routes import extract_routes

ROUTE_FILE_PATTERNS = [
    "routes/**/*.js",
    "routes/**/*.ts",
    "src/routes/**/*.js",
    "src/routes/**/*.ts",
    "app/routes/**/*.js",
    "app/routes/**/*.ts",
    "server/routes/**/*.js",
    "server/routes/**/*.ts",
]

EXPRESS_MARKERS = [
    re.compile(r"express\.Router\(\)"),
    re.compile(r"router\.(get|post|put|delete|patch|options|head)\b", re.IGNORECASE),
    re.compile(r"app\.(get|post|put|delete|patch|options|head)\b", re.IGNORECASE),
    re.compile(r"require\(['\"]express['\"]\)"),
    re.compile(r"from ['\"]express['\"]"),
]


def looks_like_routes_file(text: str) -> bool:
    """True if the text contains any Express-characteristic token."""
    return any(pattern.search(text) for pattern in EXPRESS_MARKERS)


def find_route_files(root: Path, patterns: list[str] | None = None) -> list[Path]:
    """Glob route-like directories under root, skipping node_modules."""
    found = set()
    for pattern in patterns or ROUTE_FILE_PATTERNS:
        for path in root.glob(pattern):
            if "node_modules" in path.relative_to(root).parts:
                continue
            if path.is_file():
                found.add(path)
    return sorted(found)


def read_file(file_path: Path) -> str:
    return file_path.read_text(encoding="utf-8")


def scan_routes(root: Path, files: list[Path] | None = None) -> ScanResult:
    """Read and parse every candidate file, one after another.

    A file that cannot be read is recorded in ``errors`` and the scan
    moves on to the next one.
    """
    files = find_route_files(root) if files is None else files
    result = ScanResult(total_files=len(files))

    for file_path in files:
        try:
            content = read_file(file_path)
        except (OSError, UnicodeDecodeError) as e:
            result.errors.append(ScanError(file_path=str(file_path), message=f"Failed to read file: {e}"))
            click.echo(f"  Error reading {file_path}: {e}", err=True)
            continue

        if not looks_like_routes_file(content):
            continue
        result.routes.extend(extract_routes(content, str(file_path)))

    result.total_routes = len(result.routes)
    return result
