"""HTTP API tests — chat history and process info."""

import os

import pytest

from emporium.schemas.chat import NewMessage


@pytest.mark.asyncio
async def test_messages_empty(client):
    r = await client.get("/api/v1/messages")
    assert r.status_code == 200
    assert r.json() == {"ids": [], "entities": {}}


@pytest.mark.asyncio
async def test_messages_normalized_oldest_first(client, store):
    first = await store.save(NewMessage(author="alice", text="hi", timestamp="05/03/2024 07:08:09"))
    second = await store.save(NewMessage(author="bob", text="hey", timestamp="05/03/2024 07:08:10"))

    r = await client.get("/api/v1/messages")

    data = r.json()
    assert data["ids"] == [first.id, second.id]
    assert data["entities"][second.id] == {
        "id": second.id,
        "author": "bob",
        "text": "hey",
        "timestamp": "05/03/2024 07:08:10",
    }


@pytest.mark.asyncio
async def test_messages_store_down_is_503(client, store):
    store.fail_reads = True

    r = await client.get("/api/v1/messages")

    assert r.status_code == 503


@pytest.mark.asyncio
async def test_info_describes_serving_process(client, monkeypatch):
    monkeypatch.delenv("EMPORIUM_WORKER_ROLE", raising=False)

    r = await client.get("/api/v1/info")

    assert r.status_code == 200
    data = r.json()
    assert data["pid"] == os.getpid()
    assert data["role"] == "singleton"
    assert data["cpus"] == os.cpu_count()
    assert data["max_rss_kb"] > 0
    assert "argv" not in data


@pytest.mark.asyncio
async def test_info_reports_worker_role(client, monkeypatch):
    monkeypatch.setenv("EMPORIUM_WORKER_ROLE", "worker")

    r = await client.get("/api/v1/info")

    assert r.json()["role"] == "worker"
