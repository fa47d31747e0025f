import asyncio
import json
import random

import httpx
import pytest

from chandler_api.services.errors import ResolutionError
from chandler_api.services.resolver import ConversationContext, ConversationResolver
from chandler_api.services.upstream import UpstreamClient
from chandler_api.services.upstream_models import ConversationSummary
from fixtures.upstream_stub import UPSTREAM_DOMAIN, FakeUpstream

CONVERSATIONS = [
    {"conversation_id": f"c{i}", "app_name": f"app{i}", "model_name": "gpt-3.5"}
    for i in range(4)
]


def _resolver(client: httpx.AsyncClient, **kwargs) -> ConversationResolver:
    upstream = UpstreamClient(client, token="tok", domain=UPSTREAM_DOMAIN)
    return ConversationResolver(upstream, web_url=UPSTREAM_DOMAIN, **kwargs)


@pytest.mark.asyncio
async def test_no_conversations_means_new_conversation():
    fake = FakeUpstream(conversations=[], email="alice@example.com")
    context, identity = await _resolver(fake.client()).resolve("gpt-3.5")

    assert context == ConversationContext()
    assert context.is_new
    assert identity.email == "alice@example.com"
    assert "chat/conversationInfo" not in fake.paths()
    assert fake.payload("chat/chatHistory")["model_names"] == ["gpt-3.5"]


@pytest.mark.asyncio
async def test_last_message_of_selected_conversation_is_parent():
    fake = FakeUpstream(conversations=CONVERSATIONS[:1], messages={"c0": ["m1", "m2", "m3"]})
    context, _ = await _resolver(fake.client()).resolve("gpt-3.5")

    assert context == ConversationContext(app_name="app0", conversation_id="c0", parent_message_id="m3")
    assert not context.is_new


@pytest.mark.asyncio
async def test_conversation_without_messages_has_no_parent():
    fake = FakeUpstream(conversations=CONVERSATIONS[:1], messages={})
    context, _ = await _resolver(fake.client()).resolve("gpt-3.5")

    assert context.conversation_id == "c0"
    assert context.parent_message_id == ""


def test_random_selection_stays_in_page_and_covers_it():
    page = [ConversationSummary(**c) for c in CONVERSATIONS]
    resolver = _resolver(httpx.AsyncClient(), rng=random.Random(1234))

    picked = {resolver.select_conversation(page).conversation_id for _ in range(200)}

    assert picked == {c["conversation_id"] for c in CONVERSATIONS}


def test_first_selection_policy():
    page = [ConversationSummary(**c) for c in CONVERSATIONS]
    resolver = _resolver(httpx.AsyncClient(), selection="first")
    assert all(resolver.select_conversation(page).conversation_id == "c0" for _ in range(20))


@pytest.mark.asyncio
async def test_lookups_run_concurrently():
    list_seen = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("user/info"):
            # Only completes if the conversation lookup started alongside it.
            await asyncio.wait_for(list_seen.wait(), timeout=2)
            return httpx.Response(200, json={"email": "alice@example.com"})
        if path.endswith("chat/chatHistory"):
            list_seen.set()
            return httpx.Response(200, json={"data": []})
        return httpx.Response(404)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    context, identity = await _resolver(client).resolve("gpt-3.5")

    assert context.is_new
    assert identity.email == "alice@example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("identity_status", [200, 500])
async def test_list_failure_fails_resolution(identity_status):
    fake = FakeUpstream(statuses={"chat/chatHistory": 500, "user/info": identity_status})
    with pytest.raises(ResolutionError):
        await _resolver(fake.client()).resolve("gpt-3.5")


@pytest.mark.asyncio
async def test_detail_failure_fails_resolution():
    fake = FakeUpstream(conversations=CONVERSATIONS, statuses={"chat/conversationInfo": 404})
    with pytest.raises(ResolutionError):
        await _resolver(fake.client()).resolve("gpt-3.5")


@pytest.mark.asyncio
async def test_identity_failure_cancels_conversation_lookup():
    never = asyncio.Event()
    cancelled = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("user/info"):
            return httpx.Response(401, text=json.dumps({"msg": "bad token"}))
        try:
            await never.wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return httpx.Response(200, json={"data": []})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(ResolutionError):
        await asyncio.wait_for(_resolver(client).resolve("gpt-3.5"), timeout=2)

    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_deadline_fails_resolution():
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("user/info"):
            await asyncio.sleep(10)
        return httpx.Response(200, json={"data": [], "email": "x"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(ResolutionError, match="timed out"):
        await _resolver(client).resolve("gpt-3.5", deadline=0.05)
