"""
图书目录 HTTP 客户端

目录由独立服务维护：GET {base_url}/books/{id} 返回 ``{"_id"|"id", "title", "price", ...}``。
下单时只读取标题与价格做快照。
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.orders import BookSnapshot
from application.ports.catalog import BookCatalog
from core.logging_config import get_logger
from domain.common.exceptions import BookNotFoundException, BusinessException
from shared.codes import BusinessCode


logger = get_logger(__name__)


class CatalogUnavailableException(BusinessException):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=message,
            error_type="CatalogUnavailable",
            details=details,
        )


class HttpBookCatalog(BookCatalog):
    """通过 httpx 访问图书目录服务，传输错误按指数退避重试"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=0.2, min=0.1, max=2.0),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
            reraise=True,
        ):
            with attempt:
                return await self._client.get(path)

    @staticmethod
    def _parse(book_id: str, body: Any) -> BookSnapshot:
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise CatalogUnavailableException("Catalog returned an unexpected body", {"book_id": book_id})
        payload = {
            "id": str(body.get("id") or body.get("_id") or book_id),
            "title": body.get("title") or "",
            "price": body.get("price"),
        }
        try:
            return BookSnapshot.model_validate(payload)
        except ValidationError as e:
            raise CatalogUnavailableException(
                "Catalog returned an invalid book record",
                {"book_id": book_id},
            ) from e

    async def get_book(self, book_id: str) -> BookSnapshot:
        try:
            resp = await self._get(f"/books/{book_id}")
        except (httpx.TimeoutException, httpx.TransportError) as e:
            logger.warning("catalog_unavailable", book_id=book_id, error=type(e).__name__)
            raise CatalogUnavailableException(
                "Book catalog is unavailable, please retry later",
                {"error": type(e).__name__},
            ) from e

        if resp.status_code == 404:
            raise BookNotFoundException(book_id)
        if resp.status_code >= 400:
            logger.warning("catalog_http_error", book_id=book_id, status_code=resp.status_code)
            raise CatalogUnavailableException(
                f"Book catalog returned HTTP {resp.status_code}",
                {"status_code": resp.status_code},
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise CatalogUnavailableException("Catalog returned a non-JSON body", {"book_id": book_id}) from e
        return self._parse(book_id, body)
