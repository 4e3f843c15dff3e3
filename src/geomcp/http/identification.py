"""
Identification policy: stamps every outbound request with a User-Agent.
"""

from dataclasses import dataclass
from typing import ClassVar

from geomcp.http.models import HttpRequest, HttpResponse
from geomcp.http.pipeline import Handler, Policy


@dataclass(frozen=True)
class ClientIdentity:
    """
    Product identifier and build version, resolved once at startup.

    Attributes:
        name: Stable product identifier (e.g., "geomcp")
        version: Version string of the running build
    """

    name: str
    version: str

    @property
    def user_agent(self) -> str:
        """User-Agent header value."""
        return f"{self.name}/{self.version}"


class IdentificationPolicy(Policy):
    """
    Set the User-Agent header to the client identity.

    The header is set, never appended, so applying the policy twice yields
    the same value as applying it once. No other header is touched.
    """

    name: ClassVar[str] = "identification"
    header: ClassVar[str] = "User-Agent"

    def __init__(self, identity: ClientIdentity) -> None:
        self.identity = identity

    async def apply(self, request: HttpRequest, next_handler: Handler) -> HttpResponse:
        return await next_handler(request.with_header(self.header, self.identity.user_agent))
