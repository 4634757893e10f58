"""Authentication for MCP Server.

Handles:
- Open discovery paths (JSON-RPC endpoint, manifest aliases, health)
- Shared bearer secret on every other path
- HTTP middleware applying the decision before any body parsing
"""

import hmac
from typing import Any, Iterable, Mapping, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.config import DEFAULT_OPEN_PATHS, ServerSettings
from shared.logging import get_logger

logger = get_logger(__name__)

UNAUTHORIZED_BODY = {"error": "Unauthorized"}


class AuthDecision(BaseModel):
    """Outcome of authorizing one request."""
    allowed: bool
    status_code: int = status.HTTP_200_OK
    body: Optional[dict[str, Any]] = None


ALLOW = AuthDecision(allowed=True)
REJECT = AuthDecision(
    allowed=False,
    status_code=status.HTTP_401_UNAUTHORIZED,
    body=UNAUTHORIZED_BODY,
)


class AuthGate:
    """
    Stateless request classifier.

    Allowlisted paths always pass. Everything else requires the header
    ``Authorization: Bearer <secret>``, compared exactly.
    """

    def __init__(
        self,
        secret: Optional[str],
        open_paths: Iterable[str] = DEFAULT_OPEN_PATHS,
        require_auth: bool = True
    ) -> None:
        self._expected = f"Bearer {secret}" if secret else None
        self.open_paths = frozenset(open_paths)
        self.require_auth = require_auth

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> "AuthGate":
        if settings.require_auth and not settings.auth_token:
            logger.warning("No auth token configured; protected routes will reject every request")
        return cls(
            secret=settings.auth_token,
            open_paths=settings.open_paths,
            require_auth=settings.require_auth,
        )

    def authorize(self, path: str, headers: Mapping[str, str]) -> AuthDecision:
        """
        Decide whether a request may proceed.

        Args:
            path: Request path, without query string
            headers: Request headers (case-insensitive mapping or plain dict)

        Returns:
            ALLOW or a 401 REJECT decision
        """
        if not self.require_auth or path in self.open_paths:
            return ALLOW

        # Without a configured secret nothing can match
        if self._expected is None:
            return REJECT

        provided = headers.get("authorization")
        if provided is None:
            provided = headers.get("Authorization")
        if provided is None:
            return REJECT

        if hmac.compare_digest(provided.encode(), self._expected.encode()):
            return ALLOW
        return REJECT


async def auth_middleware(request: Request, call_next):
    """
    FastAPI HTTP middleware enforcing the AuthGate.

    Runs before routing, so rejected requests never reach body parsing.
    """
    gate: Optional[AuthGate] = getattr(request.app.state, "auth_gate", None)
    if gate is None:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server not initialized"},
        )

    decision = gate.authorize(request.url.path, request.headers)
    if not decision.allowed:
        logger.warning("Unauthorized request", method=request.method, path=request.url.path)
        return JSONResponse(status_code=decision.status_code, content=decision.body)

    return await call_next(request)
