import json

import httpx
import pytest

from cadence.domain.errors import (
    CardNotFoundError,
    RepositoryError,
    RepositoryUnavailableError,
    StaleWriteError,
)
from cadence.domain.models import CardState, MemoryState
from cadence.infrastructure.adapters.records import card_to_record, memory_to_record
from cadence.infrastructure.adapters.remote_store import RemoteCardRepository


def _repo(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteCardRepository(
        url="https://db.example.com/",
        api_key="anon-key",
        access_token="user-token",
        client=client,
    )


@pytest.mark.asyncio
async def test_list_cards(make_card):
    seen = []

    def handler(request):
        seen.append(request)
        rows = [card_to_record(make_card("a")), card_to_record(make_card("b"))]
        return httpx.Response(200, json=rows)

    repo = _repo(handler)
    cards = await repo.list_cards()
    await repo.aclose()

    assert [c.id for c in cards] == ["a", "b"]
    request = seen[0]
    assert request.url.path == "/rest/v1/flashcards"
    assert request.url.params["order"] == "created_at.asc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer user-token"


@pytest.mark.asyncio
async def test_get_card_missing():
    repo = _repo(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(CardNotFoundError):
        await repo.get_card("ghost")


@pytest.mark.asyncio
async def test_save_memory_filters_on_version(make_card, review_memory):
    seen = []

    def handler(request):
        seen.append(request)
        body = json.loads(request.content)
        record = card_to_record(make_card("c1", version=body["version"]))
        record["spaced_repetition"] = body["spaced_repetition"]
        return httpx.Response(200, json=[record])

    repo = _repo(handler)
    saved = await repo.save_memory("c1", review_memory, expected_version=3)

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.params["id"] == "eq.c1"
    assert request.url.params["version"] == "eq.3"
    assert request.headers["Prefer"] == "return=representation"
    assert json.loads(request.content)["spaced_repetition"] == memory_to_record(review_memory)
    assert saved.version == 4
    assert saved.memory == review_memory


@pytest.mark.asyncio
async def test_save_memory_stale(make_card):
    def handler(request):
        if request.method == "PATCH":
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[card_to_record(make_card("c1", version=4))])

    repo = _repo(handler)

    with pytest.raises(StaleWriteError) as exc_info:
        await repo.save_memory("c1", MemoryState(), expected_version=3)

    assert exc_info.value.expected_version == 3
    assert exc_info.value.actual_version == 4


@pytest.mark.asyncio
async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    repo = _repo(handler)

    with pytest.raises(RepositoryUnavailableError):
        await repo.list_cards()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [500, 503, 429])
async def test_server_errors_are_unavailable(status):
    repo = _repo(lambda request: httpx.Response(status))

    with pytest.raises(RepositoryUnavailableError):
        await repo.list_cards()


@pytest.mark.asyncio
async def test_client_error_is_not_retryable():
    repo = _repo(lambda request: httpx.Response(400, text="bad filter"))

    with pytest.raises(RepositoryError) as exc_info:
        await repo.list_cards()

    assert not isinstance(exc_info.value, RepositoryUnavailableError)
    assert "bad filter" in str(exc_info.value)


@pytest.mark.asyncio
async def test_put_card_merges_duplicates(make_card):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, content=b"")

    repo = _repo(handler)
    card = make_card("c1", memory=MemoryState(state=CardState.LEARNING))
    stored = await repo.put_card(card)

    assert stored is card
    assert seen[0].method == "POST"
    assert "resolution=merge-duplicates" in seen[0].headers["Prefer"]


@pytest.mark.asyncio
async def test_add_card_sets_created_at(make_card):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(201, json=[seen[-1]])

    repo = _repo(handler)
    stored = await repo.add_card(make_card("c1"))

    assert seen[0]["created_at"] is not None
    assert stored.created_at is not None
