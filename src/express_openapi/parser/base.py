"""Unified data models for routes discovered in Express source files.

The route extractor produces these records once per scan; the
documentation generator and the prompt builder only read them.
"""

from pydantic import BaseModel, ConfigDict, model_validator

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")

INLINE_HANDLER = "inline function"
ANONYMOUS_HANDLER = "anonymous"


class ParameterRecord(BaseModel):
    """A single route parameter (path, query, or body)."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: str  # path / query / body
    required: bool
    data_type: str = "string"
    description: str = ""


class ResponseRecord(BaseModel):
    """A response the handler was seen sending."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    description: str
    content_type: str = "application/json"
    json_schema: dict | None = None  # best-effort shape inferred from a literal


class MiddlewareRecord(BaseModel):
    """A middleware identifier passed between the path and the handler."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str  # auth / validation / custom


class RouteRecord(BaseModel):
    """A single Express route registration with all its metadata."""

    model_config = ConfigDict(frozen=True)

    method: str  # GET / POST / PUT / DELETE / PATCH / OPTIONS / HEAD
    path: str  # /users/:id
    handler: str
    description: str | None = None
    parameters: list[ParameterRecord] = []
    responses: list[ResponseRecord] = []
    middlewares: list[MiddlewareRecord] = []
    file_path: str = ""
    line_number: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_response(cls, data):
        # A route always documents at least one response.
        if isinstance(data, dict) and not data.get("responses"):
            data = {**data, "responses": [ResponseRecord(status_code=200, description="Success")]}
        return data

    def parameters_in(self, location: str) -> list[ParameterRecord]:
        return [p for p in self.parameters if p.location == location]


class ScanError(BaseModel):
    """A file that could not be read during a workspace scan."""

    file_path: str
    message: str


class ScanResult(BaseModel):
    routes: list[RouteRecord] = []
    total_files: int = 0
    total_routes: int = 0
    errors: list[ScanError] = []
