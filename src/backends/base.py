"""Base classes for tool backends.

All backends must:
- Implement exactly one query shape
- Normalize results into VideoRecord dictionaries
- Never mutate shared state
- Never abort a whole query because of one malformed record
- Report failures as BackendError
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from shared.logging import get_logger
from shared.models import ToolDescriptor

logger = get_logger(__name__)


class BackendError(Exception):
    """A tool backend could not produce a result."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ToolBackend(ABC):
    """
    Base class for tool backends.

    Each backend:
    - Serves one tool
    - Computes every invocation independently from its arguments
    - Is stateless between calls
    """

    name: str = ""
    description: str = ""

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """Return the JSON Schema of the tool arguments."""
        pass

    @property
    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    @abstractmethod
    async def invoke(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Run the query.

        Args:
            arguments: Tool arguments, already validated against input_schema

        Returns:
            Ordered list of normalized result records

        Raises:
            BackendError: If the query cannot be completed
        """
        pass

    def _require_text(self, arguments: dict[str, Any], key: str) -> str:
        value = arguments.get(key)
        if not isinstance(value, str) or not value.strip():
            raise BackendError(f"Argument '{key}' must be a non-empty string")
        return value.strip()

    def _limit(self, arguments: dict[str, Any], default: int, maximum: int) -> int:
        """Resolve the ``limit`` argument: positive, defaulted, capped."""
        limit = arguments.get("limit")
        if limit is None:
            return min(default, maximum)
        # JSON Schema "integer" also admits 2.0
        if isinstance(limit, float) and limit.is_integer():
            limit = int(limit)
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise BackendError("Argument 'limit' must be an integer")
        if limit < 1:
            raise BackendError("Argument 'limit' must be at least 1")
        return min(limit, maximum)


async def fetch(
    url: str,
    params: Optional[dict[str, Any]] = None,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    label: str = "upstream"
) -> httpx.Response:
    """
    Issue one GET with a fresh client and map failures onto BackendError.

    Args:
        url: Target URL
        params: Query parameters
        timeout: Bound on the whole exchange, in seconds
        transport: Optional transport override
        label: Names the source in error messages instead of the URL,
            which may carry credentials

    Raises:
        BackendError: On timeout, transport failure or non-2xx status
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True
        ) as client:
            response = await client.get(url, params=params)
    except httpx.TimeoutException:
        raise BackendError(f"{label} request timed out after {timeout}s")
    except httpx.HTTPError as e:
        logger.warning("Upstream request failed", source=label, error_type=type(e).__name__)
        raise BackendError(f"{label} request failed: {type(e).__name__}")

    if not response.is_success:
        raise BackendError(
            f"{label} returned HTTP {response.status_code}",
            status_code=response.status_code
        )
    return response


class HTTPBackend(ToolBackend):
    """
    Base backend for HTTP APIs returning JSON.

    A fresh client is opened per call so invocations share nothing.
    """

    source_label = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = await fetch(
            f"{self.base_url}/{path.lstrip('/')}",
            params=params,
            timeout=self.timeout,
            transport=self._transport,
            label=self.source_label,
        )
        try:
            return response.json()
        except ValueError:
            raise BackendError(f"{self.source_label} returned a non-JSON body")
