"""Tests for the RFC 7807 exception handlers."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from sqlalchemy.exc import DBAPIError, IntegrityError

from tracker.core.errors import (
    ConflictError,
    IllegalTransitionError,
    NotFoundError,
    RateLimitError,
    register_exception_handlers,
)


pytestmark = pytest.mark.unit


class Payload(BaseModel):
    title: str


class UniqueViolation(Exception):
    constraint_name = "uq_team_member"


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Idea not found", resource="idea", resource_id=5)

    @app.get("/illegal")
    async def illegal():
        raise IllegalTransitionError(
            "requirement", "draft", "approved", {"brainstorm", "cancelled"}
        )

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Task status changed concurrently", error_code="status_conflict")

    @app.get("/limited")
    async def limited():
        raise RateLimitError(retry_after=42, limit=5, reset_time=1_700_000_000)

    @app.get("/store")
    async def store():
        raise DBAPIError("SELECT 1", {}, ConnectionError("refused"))

    @app.get("/duplicate")
    async def duplicate():
        raise IntegrityError("INSERT INTO team_members", {}, UniqueViolation("duplicate key"))

    @app.get("/orphan")
    async def orphan():
        raise IntegrityError("INSERT INTO tickets", {}, ValueError("fk"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret detail")

    @app.post("/validate")
    async def validate(data: Payload):
        return data

    return app


@pytest.fixture
async def client():
    transport = ASGITransport(app=build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestProblemDetails:
    """Tests for problem responses."""

    async def test_not_found(self, client: AsyncClient):
        response = await client.get("/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["title"] == "Not Found"
        assert body["detail"] == "Idea not found"
        assert body["instance"] == "/missing"
        assert body["resource"] == "idea"
        assert body["resource_id"] == "5"
        assert body["type"].endswith("/errors/not_found")

    async def test_illegal_transition_lists_valid_moves(self, client: AsyncClient):
        response = await client.get("/illegal")

        assert response.status_code == 409
        body = response.json()
        assert body["entity_kind"] == "requirement"
        assert body["current_status"] == "draft"
        assert body["requested_status"] == "approved"
        assert body["valid_transitions"] == ["brainstorm", "cancelled"]

    async def test_conflict(self, client: AsyncClient):
        response = await client.get("/conflict")

        assert response.status_code == 409
        assert response.json()["type"].endswith("/errors/status_conflict")

    async def test_rate_limited_headers(self, client: AsyncClient):
        response = await client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000000"
        assert response.json()["retry_after"] == 42

    async def test_store_unavailable(self, client: AsyncClient):
        response = await client.get("/store")

        assert response.status_code == 503
        assert response.json()["type"].endswith("/errors/store_unavailable")

    async def test_integrity_violation_is_conflict(self, client: AsyncClient):
        response = await client.get("/duplicate")

        assert response.status_code == 409
        body = response.json()
        assert body["type"].endswith("/errors/integrity_conflict")
        assert body["constraint"] == "uq_team_member"
        assert "duplicate key" not in response.text

    async def test_integrity_violation_without_constraint(self, client: AsyncClient):
        response = await client.get("/orphan")

        assert response.status_code == 409
        assert "constraint" not in response.json()

    async def test_unexpected_error_hides_detail(self, client: AsyncClient):
        response = await client.get("/boom")

        assert response.status_code == 500
        assert response.json()["detail"] == "An unexpected error occurred"
        assert "secret" not in response.text

    async def test_validation_error_fields(self, client: AsyncClient):
        response = await client.post("/validate", json={})

        assert response.status_code == 422
        body = response.json()
        assert body["errors"][0]["field"] == "title"
        assert body["errors"][0]["type"] == "missing"
