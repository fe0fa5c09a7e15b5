"""Convex HTTP client used for jobs, file storage and history."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

# Convex answers function errors with HTTP 560 and a JSON error payload.
CONVEX_FUNCTION_ERROR_STATUS = 560


@dataclass
class ConvexError(Exception):
    """Raised when a Convex function returns an error payload."""

    message: str
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        """Initialize the base exception with the message."""
        super().__init__(self.message)


class ConvexClient:
    """Query and mutation calls against a Convex deployment."""

    def __init__(
        self,
        url: str,
        auth_token: Optional[str] = None,
        timeout: float = 60,
        client_name: str = "pagefit-worker",
    ) -> None:
        """Set up a pooled session for the deployment at ``url``."""
        self.url = url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.client_name = client_name
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Convex-Client": self.client_name}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def _call(self, kind: str, path: str, args: Dict[str, Any]) -> Any:
        """POST one function call and unwrap its value or raise ``ConvexError``."""
        response = self.session.post(
            f"{self.url}/api/{kind}",
            json={"path": path, "format": "json", "args": args},
            headers=self._headers(),
            timeout=self.timeout,
        )
        if response.status_code not in (200, CONVEX_FUNCTION_ERROR_STATUS):
            logger.error("Convex %s %s failed with HTTP %s", kind, path, response.status_code)
            raise RuntimeError(response.text)

        payload = response.json()
        if payload.get("status") == "success":
            return payload.get("value")
        raise ConvexError(payload.get("errorMessage", "Unknown error"), payload.get("errorData"))

    def query(self, path: str, args: Dict[str, Any]) -> Any:
        """Run a Convex query."""
        return self._call("query", path, args)

    def mutation(self, path: str, args: Dict[str, Any]) -> Any:
        """Run a Convex mutation."""
        return self._call("mutation", path, args)

    def close(self) -> None:
        self.session.close()
