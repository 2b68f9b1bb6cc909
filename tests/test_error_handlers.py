"""
Tests for error handlers.

Tests that each kind of failure is rendered with the right status and body.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.error_handlers import format_validation_errors, register_exception_handlers
from socialpublish.exceptions import (
    CaughtException,
    CompositeError,
    CompositeErrorResponse,
    RequestError,
    ValidationError,
)


class Payload(BaseModel):
    content: str


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/validation")
    async def validation():
        raise ValidationError("Content must be between 1 and 1000 characters")

    @app.get("/request")
    async def request_error():
        raise RequestError("Failed to create status", status=422, module="mastodon")

    @app.get("/caught")
    async def caught():
        raise CaughtException("Failed to upload file: disk full", module="files", cause=OSError("disk full"))

    @app.get("/composite")
    async def composite():
        raise CompositeError(
            message="Failed to create post via bluesky.",
            status=502,
            responses=[CompositeErrorResponse(type="error", module="bluesky", status=502, error="Bad gateway")],
        )

    @app.get("/http")
    async def http():
        raise HTTPException(status_code=404, detail="Not here")

    @app.post("/body")
    async def body(payload: Payload):
        return payload

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    return app


class TestFormatValidationErrors(unittest.TestCase):
    """Tests for validation error formatting."""

    def test_missing_field(self):
        errors = format_validation_errors([
            {"loc": ("body", "content"), "type": "missing", "msg": "Field required"},
        ])
        self.assertEqual(errors, [{"field": "content", "message": "Field 'content' is required"}])

    def test_errors_are_capped(self):
        errors = format_validation_errors([
            {"loc": ("body", f"f{i}"), "type": "string_type", "msg": "bad"} for i in range(20)
        ])
        self.assertEqual(len(errors), 10)


class TestExceptionHandlers(unittest.TestCase):
    """Tests for registered exception handlers."""

    def setUp(self):
        self.client = TestClient(_build_app(), raise_server_exceptions=False)

    def test_validation_error(self):
        response = self.client.get("/validation")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Content must be between 1 and 1000 characters")

    def test_request_error_keeps_downstream_status(self):
        response = self.client.get("/request")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["module"], "mastodon")

    def test_caught_exception_reports_cause_to_sentry(self):
        with patch("app.error_handlers.report_to_sentry") as report:
            response = self.client.get("/caught")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error_code"], "CAUGHT_EXCEPTION")
        reported = report.call_args[0][0]
        self.assertIsInstance(reported, OSError)

    def test_composite_error_includes_responses(self):
        response = self.client.get("/composite")
        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["error"], "Failed to create post via bluesky.")
        self.assertEqual(body["responses"][0]["module"], "bluesky")

    def test_http_exception_uses_envelope(self):
        response = self.client.get("/http")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Not here")
        self.assertFalse(response.json()["success"])

    def test_request_validation_is_400(self):
        response = self.client.post("/body", json={})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"]["errors"][0]["field"], "content")

    def test_unhandled_exception_has_reference(self):
        mock_client = MagicMock()
        mock_client.is_active.return_value = False
        with patch("sentry_sdk.get_client", return_value=mock_client):
            response = self.client.get("/crash")

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error_code"], "INTERNAL_ERROR")
        self.assertIn("error_reference", body["details"])


if __name__ == "__main__":
    unittest.main()
