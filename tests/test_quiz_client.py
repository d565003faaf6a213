import httpx
import pytest

from learnpath.core.exceptions import QuizFetchError
from learnpath.services.quiz_client import fetch_quiz


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_fetch_quiz_returns_payload():
    def handler(request):
        assert request.url.path.endswith("/sections/10/quiz")
        return httpx.Response(200, json={"quiz_id": 101, "title": "Section A Quiz", "questions": [{"id": 1}]})

    async with _client(handler) as client:
        payload = await fetch_quiz(10, client=client)

    assert payload.section_id == 10
    assert payload.quiz_id == 101
    assert payload.questions == [{"id": 1}]


async def test_fetch_quiz_raises_on_error_status():
    async with _client(lambda request: httpx.Response(503)) as client:
        with pytest.raises(QuizFetchError) as excinfo:
            await fetch_quiz(10, client=client)
    assert "503" in excinfo.value.reason


async def test_fetch_quiz_raises_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(QuizFetchError):
            await fetch_quiz(10, client=client)


async def test_fetch_quiz_rejects_payload_for_another_section():
    async with _client(lambda request: httpx.Response(200, json={"section_id": 20})) as client:
        with pytest.raises(QuizFetchError):
            await fetch_quiz(10, client=client)


async def test_fetch_quiz_rejects_non_json():
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(QuizFetchError):
            await fetch_quiz(10, client=client)
