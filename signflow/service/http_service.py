"""Document field service client over HTTP.

Talks to the document application's form field endpoints::

    GET    /documents/{document_id}/form_fields[?page_number=n]
    POST   /documents/{document_id}/form_fields
    PATCH  /documents/{document_id}/form_fields/{field_id}
    DELETE /documents/{document_id}/form_fields/{field_id}
    POST   /documents/{document_id}/form_fields/{field_id}/complete
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import structlog

from signflow.model.field import FormField
from signflow.service.field_service import FieldNotFoundError, FieldServiceError

logger = structlog.get_logger(__name__)


class HttpFieldService:
    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._session = aiohttp.ClientSession(headers=headers, timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def list_fields(self, document_id: str, page_number: int | None = None) -> list[FormField]:
        params = {"page_number": str(page_number)} if page_number is not None else None
        data = await self._request("GET", self._collection(document_id), params=params)
        return [self._parse(item) for item in data or []]

    async def create_field(self, document_id: str, payload: dict[str, Any]) -> FormField:
        data = await self._request("POST", self._collection(document_id), json={"form_field": payload})
        return self._parse(data)

    async def update_field(
        self, document_id: str, field_id: int | str, payload: dict[str, Any]
    ) -> FormField:
        data = await self._request(
            "PATCH", self._member(document_id, field_id), json={"form_field": payload}
        )
        return self._parse(data)

    async def delete_field(self, document_id: str, field_id: int | str) -> None:
        await self._request("DELETE", self._member(document_id, field_id))

    async def complete_field(self, document_id: str, field_id: int | str, value: str) -> FormField:
        data = await self._request(
            "POST", f"{self._member(document_id, field_id)}/complete", json={"value": value}
        )
        return self._parse(data)

    def _collection(self, document_id: str) -> str:
        return f"{self._base_url}/documents/{document_id}/form_fields"

    def _member(self, document_id: str, field_id: int | str) -> str:
        return f"{self._collection(document_id)}/{field_id}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        session = await self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status == 404:
                    raise FieldNotFoundError(f"{method} {url} returned 404")
                if response.status >= 400:
                    body = await response.text()
                    logger.error(
                        "field_service.http_error",
                        method=method,
                        url=url,
                        status=response.status,
                        body=body[:200],
                    )
                    raise FieldServiceError(f"{method} {url} returned {response.status}")
                if response.status == 204 or response.content_length == 0:
                    return None
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("field_service.transport_error", method=method, url=url, error=str(exc))
            raise FieldServiceError(f"{method} {url} failed: {exc!r}") from exc
        except ValueError as exc:
            logger.error("field_service.bad_response", method=method, url=url, error=str(exc))
            raise FieldServiceError(f"{method} {url} returned malformed JSON") from exc

    @staticmethod
    def _parse(data: Any) -> FormField:
        try:
            return FormField.from_wire(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise FieldServiceError(f"unexpected form field payload: {exc!r}") from exc
