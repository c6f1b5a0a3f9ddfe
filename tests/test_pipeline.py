import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from express_openapi.llm import CompletionError
from express_openapi.parser.base import ParameterRecord, RouteRecord
from express_openapi.pipeline import (
    AI_CALL_DELAY,
    GenerationCancelled,
    build_ai_document,
    build_quick_document,
    write_artifacts,
)

AI_YAML = """/users/{id}:
  get:
    summary: Fetch a user
    tags:
      - Accounts
    responses:
      '200':
        description: The user
"""

ORDERS_YAML = """/orders:
  post:
    summary: Place an order
    responses:
      '201':
        description: Created
"""


def _routes():
    return [
        RouteRecord(
            method="GET",
            path="/users/:id",
            handler="getUser",
            parameters=[ParameterRecord(name="id", location="path", required=True)],
        ),
        RouteRecord(method="POST", path="/orders", handler="createOrder"),
    ]


def _client(*replies):
    client = MagicMock()
    client.generate_documentation = AsyncMock(side_effect=list(replies))
    return client


class TestQuickDocument:
    def test_builds_finalized_document(self):
        gen = build_quick_document(_routes(), "Shop", "3.0.0", "https://shop.example.com")
        doc = gen.document
        assert doc["info"]["title"] == "Shop"
        assert doc["info"]["version"] == "3.0.0"
        assert doc["servers"] == [{"url": "https://shop.example.com", "description": "Development server"}]
        assert set(doc["paths"]) == {"/users/{id}", "/orders"}
        assert [t["name"] for t in doc["tags"]] == ["Users", "Orders"]
        assert "ErrorResponse" in doc["components"]["schemas"]

    def test_empty_route_list(self):
        doc = build_quick_document([]).document
        assert doc["paths"] == {}
        assert doc["tags"] == [{"name": "Default", "description": "API endpoints"}]


class TestAiDocument:
    def test_uses_ai_fragments(self):
        client = _client(AI_YAML, AI_YAML)
        sleep = AsyncMock()

        gen = asyncio.run(build_ai_document(_routes()[:1] * 2, client, sleep=sleep))

        assert gen.document["paths"]["/users/{id}"]["get"]["summary"] == "Fetch a user"
        assert gen.document["info"]["description"] == "Auto-generated API documentation using AI"
        assert client.generate_documentation.await_count == 2
        sleep.assert_awaited_once_with(AI_CALL_DELAY)

    def test_failed_route_falls_back(self, capsys):
        client = _client(CompletionError("Rate limit exceeded. Please try again later.", 429), ORDERS_YAML)
        sleep = AsyncMock()

        gen = asyncio.run(build_ai_document(_routes(), client, sleep=sleep))

        paths = gen.document["paths"]
        assert paths["/users/{id}"]["get"]["summary"] == "Get Users"
        assert paths["/orders"]["post"]["summary"] == "Place an order"
        assert "using fallback" in capsys.readouterr().err

    def test_every_route_is_represented(self):
        client = _client("not yaml at all {{{", ORDERS_YAML)
        gen = asyncio.run(build_ai_document(_routes(), client, sleep=AsyncMock()))
        assert gen.document["paths"]["/users/{id}"]["get"]["operationId"] == "getUser"
        assert set(gen.document["paths"]) == {"/users/{id}", "/orders"}

    def test_cancellation_between_routes(self):
        client = _client(AI_YAML, AI_YAML)
        checks = iter([False, True])

        with pytest.raises(GenerationCancelled, match="after 1 of 2"):
            asyncio.run(build_ai_document(_routes(), client, is_cancelled=lambda: next(checks), sleep=AsyncMock()))
        assert client.generate_documentation.await_count == 1

    def test_no_delay_after_last_route(self):
        client = _client(AI_YAML)
        sleep = AsyncMock()
        asyncio.run(build_ai_document(_routes()[:1], client, sleep=sleep))
        sleep.assert_not_awaited()


class TestWriteArtifacts:
    def test_writes_yaml_json_and_report(self, tmp_path):
        gen = build_quick_document(_routes())
        out = tmp_path / "docs"

        written, result = write_artifacts(gen, out)

        assert set(written) == {"openapi.yaml", "openapi.json", "validation-report.txt"}
        assert yaml.safe_load((out / "openapi.yaml").read_text()) == gen.document
        assert json.loads((out / "openapi.json").read_text()) == gen.document
        assert result is not None
        assert result.is_valid is True
        assert "OPENAPI VALIDATION REPORT" in (out / "validation-report.txt").read_text()

    def test_skip_validation(self, tmp_path):
        written, result = write_artifacts(build_quick_document(_routes()), tmp_path, validate=False)
        assert result is None
        assert not (tmp_path / "validation-report.txt").exists()
        assert set(written) == {"openapi.yaml", "openapi.json"}
