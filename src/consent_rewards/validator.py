"""
Client for the external dataset-content validator.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx


class ValidatorTransportError(RuntimeError):
    """Raised when the validator cannot be reached or answers with garbage."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class UploadFile:
    """
    A file handed to the engine by the upload surface.
    """

    file_name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        if "." not in self.file_name:
            return ""
        return "." + self.file_name.rsplit(".", 1)[-1].lower()

    @classmethod
    def from_path(cls, path: Path, content_type: str = "application/octet-stream") -> "UploadFile":
        return cls(file_name=path.name, content=path.read_bytes(), content_type=content_type)


@dataclass(frozen=True)
class ValidatorVerdict:
    ok: bool
    result: Optional[str] = None
    error: Optional[str] = None
    records_count: Optional[int] = None

    @property
    def rationale(self) -> str:
        if self.ok:
            return self.result or "This dataset is now available for partner requests."
        return self.error or self.result or "AI validation failed."

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ValidatorVerdict":
        records = payload.get("recordsCount")
        return cls(
            ok=bool(payload.get("ok")),
            result=payload.get("result"),
            error=payload.get("error"),
            records_count=int(records) if records is not None else None,
        )


class DatasetValidator:
    """Interface for anything that judges an uploaded file."""

    async def validate(self, file: UploadFile) -> ValidatorVerdict:
        raise NotImplementedError


class HttpDatasetValidator(DatasetValidator):
    """
    Posts the file as multipart form data and decodes the JSON verdict.

    Non-2xx answers, network failures and undecodable bodies all raise
    `ValidatorTransportError`.
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

    async def validate(self, file: UploadFile) -> ValidatorVerdict:
        files = {"file": (file.file_name, file.content, file.content_type)}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            ) as client:
                response = await client.post(self._url, files=files)
        except httpx.HTTPError as exc:
            raise ValidatorTransportError(f"AI server unreachable: {exc}") from exc

        if not response.is_success:
            raise ValidatorTransportError(
                f"AI server error ({response.status_code}). {response.text}".strip(),
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValidatorTransportError(f"AI server returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValidatorTransportError("AI server returned an invalid verdict payload")
        try:
            return ValidatorVerdict.from_payload(payload)
        except (TypeError, ValueError) as exc:
            raise ValidatorTransportError(f"AI server returned an invalid verdict payload: {exc}") from exc
