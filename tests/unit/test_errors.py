"""
Unit tests for error hierarchy.

Tests cover:
- Base GeoMcpError behavior
- Transport errors and reason codes
- Tool errors with context
- Config errors
- Error serialization
"""

import pytest

from geomcp.errors import (
    ERROR_CONFIG_MISSING_TOKEN,
    ERROR_PIPELINE_SEALED,
    ERROR_TOOL_API_RESPONSE,
    ERROR_TOOL_INVALID_ARGS,
    ERROR_TOOL_NOT_FOUND,
    ERROR_TRANSPORT_FAILED,
    ERROR_TRANSPORT_RETRIES_EXHAUSTED,
    REASON_CONNECTION_RESET,
    REASON_DNS_FAILURE,
    REASON_HTTP_STATUS,
    REASON_OTHER,
    REASON_TIMEOUT,
    ApiResponseError,
    ConfigError,
    GeoMcpError,
    MissingAccessTokenError,
    PipelineSealedError,
    RetryExhaustedError,
    ToolError,
    ToolInvalidArgsError,
    ToolNotFoundError,
    TransportError,
)
from geomcp.http.models import HttpResponse


class TestGeoMcpError:
    """Tests for base GeoMcpError."""

    def test_basic_error(self) -> None:
        """Create a basic error with message."""
        err = GeoMcpError(message="Something went wrong", code=9999)
        assert err.message == "Something went wrong"
        assert err.code == 9999
        assert err.suggestion is None
        assert err.context == {}

    def test_str_includes_code_and_suggestion(self) -> None:
        """String form shows code, message and suggestion."""
        err = GeoMcpError(message="Failed", code=1, suggestion="Try again")
        assert str(err) == "[E1] Failed\nSuggestion: Try again"

    def test_can_be_raised(self) -> None:
        """Errors are real exceptions."""
        with pytest.raises(GeoMcpError, match="boom"):
            raise GeoMcpError(message="boom")

    def test_to_dict(self) -> None:
        """Serialization includes type, code and context."""
        data = GeoMcpError(message="x", code=5, context={"k": "v"}).to_dict()
        assert data == {
            "error_type": "GeoMcpError",
            "message": "x",
            "code": 5,
            "suggestion": None,
            "context": {"k": "v"},
        }


class TestTransportErrors:
    """Tests for TransportError and RetryExhaustedError."""

    def test_defaults(self) -> None:
        """A bare transport error gets a message and code."""
        err = TransportError(reason=REASON_TIMEOUT, url="https://api.example.com/")
        assert err.code == ERROR_TRANSPORT_FAILED
        assert "timeout" in err.message
        assert err.context["reason"] == REASON_TIMEOUT
        assert err.status_code is None

    @pytest.mark.parametrize(
        ("reason", "transient"),
        [
            (REASON_TIMEOUT, True),
            (REASON_CONNECTION_RESET, True),
            (REASON_DNS_FAILURE, True),
            (REASON_OTHER, False),
            (REASON_HTTP_STATUS, False),
        ],
    )
    def test_transient(self, reason: str, transient: bool) -> None:
        """Only network-level reasons are transient."""
        assert TransportError(reason=reason).transient is transient

    def test_exhausted_with_response(self) -> None:
        """Exhaustion on status codes reports the last status."""
        err = RetryExhaustedError(reason=REASON_HTTP_STATUS, attempts=3, response=HttpResponse(503))
        assert err.code == ERROR_TRANSPORT_RETRIES_EXHAUSTED
        assert err.status_code == 503
        assert err.message == "Gave up after 3 attempts: HTTP 503"
        assert err.context["status_code"] == 503
        assert err.suggestion

    def test_exhausted_is_transport_error(self) -> None:
        """Callers catching TransportError also catch exhaustion."""
        assert isinstance(RetryExhaustedError(), TransportError)

    def test_pipeline_sealed(self) -> None:
        """Sealed pipeline errors name the rejected policy."""
        err = PipelineSealedError(policy="retry")
        assert err.code == ERROR_PIPELINE_SEALED
        assert "retry" in err.message


class TestToolErrors:
    """Tests for tool errors."""

    def test_not_found(self) -> None:
        """Unknown tool errors carry the tool name."""
        err = ToolNotFoundError(tool="teleport")
        assert err.code == ERROR_TOOL_NOT_FOUND
        assert err.message == "Tool not found: teleport"
        assert err.context["tool"] == "teleport"
        assert isinstance(err, ToolError)

    def test_invalid_args(self) -> None:
        """Validation errors include the validation message."""
        err = ToolInvalidArgsError(tool="directions", tool_args={"x": 1}, validation_error="coordinates: missing")
        assert err.code == ERROR_TOOL_INVALID_ARGS
        assert "coordinates: missing" in err.message
        assert err.context["tool_args"] == {"x": 1}

    @pytest.mark.parametrize(("status", "hint"), [(401, "token"), (403, "token"), (404, "coordinates")])
    def test_api_response_suggestions(self, status: int, hint: str) -> None:
        """Common API rejections get a targeted suggestion."""
        err = ApiResponseError(tool="matrix", status_code=status, api_message="nope")
        assert err.code == ERROR_TOOL_API_RESPONSE
        assert hint in err.suggestion
        assert err.message == f"matrix request rejected with HTTP {status}: nope"

    def test_api_response_without_message(self) -> None:
        """The API message is optional."""
        err = ApiResponseError(tool="matrix", status_code=422)
        assert err.message == "matrix request rejected with HTTP 422"
        assert err.suggestion is None


class TestConfigErrors:
    """Tests for config errors."""

    def test_config_error_source(self) -> None:
        """Config errors remember where the value came from."""
        err = ConfigError(message="bad", source="geomcp.yaml")
        assert err.context["source"] == "geomcp.yaml"

    def test_missing_token(self) -> None:
        """Missing token errors explain how to fix them."""
        err = MissingAccessTokenError(source="env")
        assert err.code == ERROR_CONFIG_MISSING_TOKEN
        assert "MAPBOX_ACCESS_TOKEN" in err.suggestion
        assert isinstance(err, ConfigError)
