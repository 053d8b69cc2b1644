import json

import httpx
import pytest

from livingdoc_core.assets import HttpAssetService, parse_asset_response
from livingdoc_core.domain_models import MediaReference
from livingdoc_core.errors import AssetJobError


SOURCE = "https://agency.test/img.jpg"


def _service(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpAssetService("http://assets.test/", timeout=5, client=client), client


@pytest.mark.asyncio
async def test_process_returns_media_reference():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.method, str(request.url), json.loads(request.content)))
        return httpx.Response(
            200,
            json={"url": "https://cdn.test/img.jpg", "width": 800, "height": 600, "size": 2048, "mimeType": "image/jpeg"},
        )

    service, client = _service(handler)
    async with client:
        media = await service.process(SOURCE)

    assert media == MediaReference("https://cdn.test/img.jpg", 800, 600, 2048, "image/jpeg")
    assert received == [("POST", "http://assets.test/jobs", {"sourceUrl": SOURCE})]


@pytest.mark.asyncio
async def test_process_http_error():
    service, client = _service(lambda request: httpx.Response(500, text="boom"))
    async with client:
        with pytest.raises(AssetJobError) as exc:
            await service.process(SOURCE)

    assert exc.value.source_url == SOURCE
    assert "500" in str(exc.value)


@pytest.mark.asyncio
async def test_process_incomplete_response():
    service, client = _service(lambda request: httpx.Response(200, json={"url": "x"}))
    async with client:
        with pytest.raises(AssetJobError):
            await service.process(SOURCE)


@pytest.mark.asyncio
async def test_process_non_json_response():
    service, client = _service(lambda request: httpx.Response(200, text="<html>"))
    async with client:
        with pytest.raises(AssetJobError):
            await service.process(SOURCE)


@pytest.mark.asyncio
async def test_process_connection_error():
    def handler(request):
        raise httpx.ConnectError("sin red", request=request)

    service, client = _service(handler)
    async with client:
        with pytest.raises(AssetJobError) as exc:
            await service.process(SOURCE)

    assert isinstance(exc.value.__cause__, httpx.ConnectError)


def test_parse_asset_response_invalid_types():
    with pytest.raises(AssetJobError):
        parse_asset_response(SOURCE, [])
    with pytest.raises(AssetJobError):
        parse_asset_response(
            SOURCE,
            {"url": "x", "width": "ancho", "height": 1, "size": 1, "mimeType": "image/png"},
        )
