from decimal import Decimal

import httpx
import pytest

from domain.common.exceptions import BookNotFoundException
from infrastructure.external.catalog.http_catalog import CatalogUnavailableException, HttpBookCatalog


def catalog(handler, retries=0):
    return HttpBookCatalog("http://catalog/api", max_retries=retries, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_reads_title_and_price():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/books/64f0c0ffee"
        return httpx.Response(200, json={"_id": "64f0c0ffee", "title": "Karnali Blues", "price": 550, "stock": 3})

    book = await catalog(handler).get_book("64f0c0ffee")
    assert book.id == "64f0c0ffee"
    assert book.title == "Karnali Blues"
    assert book.price == Decimal("550")


@pytest.mark.asyncio
async def test_unknown_book():
    with pytest.raises(BookNotFoundException):
        await catalog(lambda request: httpx.Response(404, json={"message": "Book not found"})).get_book("x")


@pytest.mark.asyncio
async def test_transport_failure_is_reported_after_retries():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CatalogUnavailableException):
        await catalog(handler, retries=1).get_book("x")
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_record_without_price_is_rejected():
    with pytest.raises(CatalogUnavailableException):
        await catalog(lambda request: httpx.Response(200, json={"title": "No price"})).get_book("x")
