"""
Base classes for the tool interface.

This module defines the core abstractions for tools in geomcp:
- Tool: Abstract base class that all tools must implement
- ToolOutput: Standardized result format from tool execution

Design Principles:
    - Tools receive the pipeline's execute function through their
      constructor and never touch the transport directly
    - Arguments are validated against the tool's Pydantic input model
      before invoke() runs
    - Tools return ToolOutput and never raise for expected failures
      (bad arguments, API rejections, exhausted retries)
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
from pydantic import BaseModel, ValidationError

from geomcp.errors import (
    ApiResponseError,
    MissingAccessTokenError,
    ToolExecutionError,
    ToolInvalidArgsError,
    TransportError,
)
from geomcp.http.models import HttpRequest, HttpResponse
from geomcp.http.pipeline import Handler
from geomcp.logging import get_logger
from geomcp.schema import ToolInput

if TYPE_CHECKING:
    from geomcp.config import ServerConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class ToolOutput:
    """
    Standardized output from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        data: The output data from the tool (JSON-serializable)
        error: Error message if success is False
        image: Base64 image payload, for tools that render maps
        mime_type: MIME type of image
        metadata: Additional metadata about the execution
    """

    success: bool
    data: Any = None
    error: str | None = None
    image: str | None = None
    mime_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any, **metadata: Any) -> "ToolOutput":
        """Create a successful output."""
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json", exclude_none=True)
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def ok_image(cls, content: bytes, mime_type: str, **metadata: Any) -> "ToolOutput":
        """Create a successful output carrying an image."""
        return cls(
            success=True,
            image=base64.b64encode(content).decode("ascii"),
            mime_type=mime_type,
            metadata=metadata,
        )

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolOutput":
        """Create a failed output."""
        return cls(success=False, error=error, metadata=metadata)


class Tool(ABC):
    """
    Abstract base class for all geomcp tools.

    Each tool:
    - Has a unique name (e.g., "forward_geocode")
    - Declares a Pydantic input model; its JSON schema is advertised to the host
    - Implements invoke() against validated input

    Subclasses must implement:
    - name property: Returns the tool's unique identifier
    - input_model: The ToolInput subclass for its arguments
    - invoke(): Performs the tool's action

    Example:
        class EchoTool(Tool):
            input_model = EchoInput

            @property
            def name(self) -> str:
                return "echo"

            async def invoke(self, params: EchoInput) -> ToolOutput:
                return ToolOutput.ok({"message": params.message})
    """

    input_model: ClassVar[type[ToolInput]] = ToolInput
    read_only: ClassVar[bool] = True
    requires_network: ClassVar[bool] = True

    def __init__(self, execute: Handler, config: "ServerConfig") -> None:
        """
        Args:
            execute: The HTTP pipeline's bound execute function
            config: Server configuration (endpoint, token)
        """
        self._execute = execute
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description shown to the agent."""
        return f"Tool: {self.name}"

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments."""
        return self.input_model.model_json_schema()

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        """
        Validate the arguments for this tool.

        Returns:
            List of validation error messages (empty if valid)
        """
        try:
            self.input_model.model_validate(args)
        except ValidationError as e:
            return [
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            ]
        return []

    async def run(self, args: dict[str, Any] | None) -> ToolOutput:
        """
        Validate arguments and invoke the tool.

        Returns:
            ToolOutput; expected failures never raise
        """
        args = args or {}
        try:
            params = self.input_model.model_validate(args)
        except ValidationError:
            error = ToolInvalidArgsError(
                tool=self.name,
                tool_args=args,
                validation_error="; ".join(self.validate_args(args)),
            )
            return ToolOutput.fail(error.message, **error.to_dict())

        try:
            return await self.invoke(params)
        except TransportError as e:
            logger.warning("tool.transport_error", tool=self.name, reason=e.reason, attempts=e.attempts)
            return ToolOutput.fail(e.message, **e.to_dict())
        except MissingAccessTokenError as e:
            return ToolOutput.fail(str(e), **e.to_dict())
        except ValueError as e:
            # Undecodable or unexpected API payload
            logger.warning("tool.bad_payload", tool=self.name, error=str(e))
            error = ToolExecutionError(tool=self.name, tool_args=args, underlying_error=str(e))
            return ToolOutput.fail(error.message, **error.to_dict())

    @abstractmethod
    async def invoke(self, params: Any) -> ToolOutput:
        """
        Perform the tool's action with validated parameters.

        Raise TransportError freely; run() converts it to a failed output.
        """
        ...

    # -------------------------------------------------------------------------
    # Helpers for API-backed tools
    # -------------------------------------------------------------------------

    def api_url(self, path: str, **params: Any) -> str:
        """
        Build an absolute API URL with the access token appended.

        None values are dropped; lists are joined with commas.
        """
        query: dict[str, str] = {}
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (list, tuple)):
                value = ",".join(str(getattr(v, "value", v)) for v in value)
            query[key] = str(getattr(value, "value", value))
        query["access_token"] = self.config.require_token()
        return str(httpx.URL(self.config.api_endpoint).join(path.lstrip("/")).copy_merge_params(query))

    async def api_get(self, path: str, **params: Any) -> HttpResponse:
        """Send a GET request for an API path through the pipeline."""
        return await self._execute(HttpRequest.get(self.api_url(path, **params)))

    def api_json(self, response: HttpResponse) -> dict[str, Any]:
        """
        Decode a successful response body as a JSON object.

        Raises:
            ValueError: If the body is not JSON or not an object
        """
        payload = response.json()
        if not isinstance(payload, dict):
            msg = f"Unexpected {self.name} payload: expected a JSON object, got {type(payload).__name__}"
            raise ValueError(msg)
        return payload

    def api_failure(self, response: HttpResponse) -> ToolOutput:
        """Translate a delivered non-success response into a failed output."""
        api_message = ""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            api_message = str(payload.get("message") or payload.get("error") or "")
        error = ApiResponseError(
            tool=self.name,
            status_code=response.status_code,
            api_message=api_message,
        )
        return ToolOutput.fail(error.message, **error.to_dict())

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name}>"
