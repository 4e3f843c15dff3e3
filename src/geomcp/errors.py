"""
Exception hierarchy for geomcp.

All geomcp exceptions inherit from GeoMcpError, allowing callers to catch
all geomcp-specific exceptions with a single except clause.

Exception Categories:
    - TransportError: Outbound request failed at the network level or
      exhausted its retries
    - ToolError: A tool could not be resolved, validated or executed
    - ConfigError: Invalid or incomplete configuration

Only transport failures cross the HTTP pipeline boundary. A delivered
response with a client-error status is a normal return value, and tools
translate it into an ApiResponseError-shaped failure themselves.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from geomcp.http.models import HttpResponse


# =============================================================================
# Error Codes
# =============================================================================

# Transport errors: 1xxx
ERROR_TRANSPORT_FAILED = 1001
ERROR_TRANSPORT_RETRIES_EXHAUSTED = 1002
ERROR_PIPELINE_SEALED = 1003

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_INVALID_ARGS = 2002
ERROR_TOOL_EXECUTION_FAILED = 2003
ERROR_TOOL_API_RESPONSE = 2004

# Config errors: 3xxx
ERROR_CONFIG_INVALID = 3001
ERROR_CONFIG_MISSING_TOKEN = 3002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class GeoMcpError(Exception):
    """
    Base exception for all geomcp errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Transport Errors
# =============================================================================


# Reason codes carried by TransportError
REASON_TIMEOUT = "timeout"
REASON_CONNECTION_REFUSED = "connection-refused"
REASON_CONNECTION_RESET = "connection-reset"
REASON_DNS_FAILURE = "dns-failure"
REASON_HTTP_STATUS = "http-status"
REASON_OTHER = "other"

TRANSIENT_REASONS = frozenset({
    REASON_TIMEOUT,
    REASON_CONNECTION_REFUSED,
    REASON_CONNECTION_RESET,
    REASON_DNS_FAILURE,
})


@dataclass
class TransportError(GeoMcpError):
    """
    Raised when an outbound request cannot produce a usable response.

    The transport adapter raises it for a single failed physical call; the
    retry policy raises it (or RetryExhaustedError) for the logical call.

    Attributes:
        reason: One of the REASON_* codes
        url: Target URL of the request (may contain redacted values)
        attempts: Number of physical attempts made
        response: Last response observed, if the failure was a status code
    """

    reason: str = REASON_OTHER
    url: str = ""
    attempts: int = 1
    response: "HttpResponse | None" = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Request to {self.url or 'remote API'} failed: {self.reason}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_FAILED
        self.context.update({
            "reason": self.reason,
            "url": self.url,
            "attempts": self.attempts,
            "status_code": self.status_code,
        })

    @property
    def status_code(self) -> int | None:
        """Status code of the last response, if any."""
        return self.response.status_code if self.response is not None else None

    @property
    def transient(self) -> bool:
        """Whether this failure is likely to be resolved by retrying."""
        return self.reason in TRANSIENT_REASONS


@dataclass
class RetryExhaustedError(TransportError):
    """Raised when every configured attempt failed with a transient outcome."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            last = f"HTTP {self.status_code}" if self.response is not None else self.reason
            self.message = f"Gave up after {self.attempts} attempts: {last}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_RETRIES_EXHAUSTED
        if not self.suggestion:
            self.suggestion = "The remote API may be degraded; try again later"
        super().__post_init__()


@dataclass
class PipelineSealedError(GeoMcpError):
    """Raised when a policy is added after the pipeline started serving calls."""

    policy: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot add policy {self.policy!r}: pipeline is already built"
        if self.code == 0:
            self.code = ERROR_PIPELINE_SEALED
        if not self.suggestion:
            self.suggestion = "Register every policy during startup, before the first execute()"
        self.context["policy"] = self.policy


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(GeoMcpError):
    """
    Base class for tool errors.

    Attributes:
        tool: Name of the tool that failed
        tool_args: Arguments that were provided
    """

    tool: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "tool_args": self.tool_args,
        })


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the tool name or the --enable-tools/--disable-tools flags"
        super().__post_init__()


@dataclass
class ToolInvalidArgsError(ToolError):
    """Raised when tool arguments fail schema validation."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid arguments for {self.tool}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_INVALID_ARGS
        super().__post_init__()
        self.context["validation_error"] = self.validation_error


@dataclass
class ToolExecutionError(ToolError):
    """Raised when a tool fails during execution."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool {self.tool} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_EXECUTION_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ApiResponseError(ToolError):
    """Describes a delivered non-success response from the remote API."""

    status_code: int = 0
    api_message: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            detail = f": {self.api_message}" if self.api_message else ""
            self.message = f"{self.tool} request rejected with HTTP {self.status_code}{detail}"
        if self.code == 0:
            self.code = ERROR_TOOL_API_RESPONSE
        if not self.suggestion:
            if self.status_code in (401, 403):
                self.suggestion = "Check that the access token is valid and has the required scopes"
            elif self.status_code == 404:
                self.suggestion = "Check the coordinates or identifiers in the request"
        super().__post_init__()
        self.context.update({
            "status_code": self.status_code,
            "api_message": self.api_message,
        })


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(GeoMcpError):
    """
    Raised when configuration cannot be loaded or validated.

    Attributes:
        source: File path or "env" describing where the value came from
    """

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["source"] = self.source


@dataclass
class MissingAccessTokenError(ConfigError):
    """Raised when a network tool runs without an API access token."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "No API access token configured"
        if self.code == 0:
            self.code = ERROR_CONFIG_MISSING_TOKEN
        if not self.suggestion:
            self.suggestion = "Set MAPBOX_ACCESS_TOKEN or access_token in the config file"
        super().__post_init__()
