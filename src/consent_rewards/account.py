"""Client for the account-deletion callable function."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletionResult:
    success: bool
    error: Optional[str] = None


class AccountDeletionClient:
    """
    Asks the backend to email a deletion confirmation link. The identity is
    only deleted once the user follows that link, out of band.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport

    async def request_deletion(self, user_name: str, user_email: str, user_id: str) -> DeletionResult:
        if not user_name or not user_email or not user_id:
            raise ValueError("userName, userEmail, userId are required.")

        payload = {"data": {"userName": user_name, "userEmail": user_email, "userId": user_id}}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            ) as client:
                response = await client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            LOGGER.warning("Deletion request transport failure: %s", exc)
            return DeletionResult(success=False, error=str(exc))

        if not response.is_success:
            return DeletionResult(
                success=False, error=f"HTTP {response.status_code}: {response.text}".strip()
            )
        try:
            body = response.json()
        except ValueError:
            return DeletionResult(success=False, error="Invalid response from deletion service")
        # Callable functions wrap their return value in "result".
        result = body.get("result", body) if isinstance(body, dict) else {}
        if not isinstance(result, dict):
            return DeletionResult(success=False, error="Invalid response from deletion service")
        return DeletionResult(success=bool(result.get("success")), error=result.get("error"))
