import asyncio
import json
from typing import Any, Dict, List

import httpx

from travel_copilot.agents.local_fallback import generate_local_response
from travel_copilot.checklists import build_checklist_items, checklist_status, is_international
from travel_copilot.schemas import ChatMessage, CustomerCreate, CustomerUpdate
from travel_copilot.store import (
    CONVERSATIONS_KEY,
    ChecklistStore,
    ConversationStore,
    CustomerStore,
    ItineraryStore,
    LocalCache,
    Stores,
)


class StubRemote:
    """In-memory replacement for RemoteTable; records every call."""

    def __init__(self, rows: List[Dict[str, Any]] | None = None, fail: bool = False):
        self.rows = list(rows or [])
        self.fail = fail
        self.calls: List[tuple] = []

    async def select(self, filters, order=None):
        self.calls.append(("select", filters, order))
        self._maybe_fail()
        return list(self.rows)

    async def insert(self, record):
        self.calls.append(("insert", record))
        self._maybe_fail()
        return {**record, "id": "remote-1"}

    async def update(self, filters, values):
        self.calls.append(("update", filters, values))
        self._maybe_fail()

    async def delete(self, filters):
        self.calls.append(("delete", filters))
        self._maybe_fail()

    def _maybe_fail(self):
        if self.fail:
            raise httpx.ConnectError("backend down")


def test_local_cache_round_trips_through_files(tmp_path):
    cache = LocalCache(tmp_path)
    cache.write("things", [{"id": "a"}])

    assert json.loads((tmp_path / "things.json").read_text(encoding="utf-8")) == [{"id": "a"}]
    assert LocalCache(tmp_path).read("things") == [{"id": "a"}]
    assert cache.read("missing") is None


def test_local_cache_ignores_corrupt_entries(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "scalar.json").write_text('{"id": 1}', encoding="utf-8")
    cache = LocalCache(tmp_path)

    assert cache.read("broken") is None
    assert cache.read("scalar") is None


def test_offline_conversation_create_and_update():
    store = ConversationStore(LocalCache())

    conversation_id = asyncio.run(store.create("Trip to Goa"))
    assert conversation_id.startswith("local-")

    message = ChatMessage(id="m1", role="user", content="from Pune to Goa")
    updated = asyncio.run(store.update(conversation_id, [message], customer_id="c1"))

    assert updated is not None
    assert updated.messages[0].content == "from Pune to Goa"
    assert updated.customer_id == "c1"
    assert store.cache.read(CONVERSATIONS_KEY)[0]["id"] == conversation_id


def test_update_of_unknown_conversation_returns_none():
    store = ConversationStore(LocalCache())
    assert asyncio.run(store.update("nope", [])) is None
    assert asyncio.run(store.delete("nope")) is False


def test_cached_records_survive_reload():
    cache = LocalCache()
    store = ConversationStore(cache)
    conversation_id = asyncio.run(store.create("Cached"))

    reloaded = ConversationStore(cache)
    asyncio.run(reloaded.load())

    assert reloaded.get(conversation_id).title == "Cached"


def test_remote_insert_swaps_local_id_for_server_id():
    remote = StubRemote()
    store = ConversationStore(LocalCache(), remote, agent_id="agent-7")

    conversation_id = asyncio.run(store.create("Remote"))

    assert conversation_id == "remote-1"
    assert [c.id for c in store.records] == ["remote-1"]
    inserted = remote.calls[0][1]
    assert inserted["agent_id"] == "agent-7"
    assert "id" not in inserted


def test_failing_backend_keeps_local_state():
    remote = StubRemote(fail=True)
    store = CustomerStore(LocalCache(), remote, agent_id="agent-7")

    customer_id = asyncio.run(store.add(CustomerCreate(name="Asha")))
    assert customer_id.startswith("local-")

    updated = asyncio.run(store.update(customer_id, CustomerUpdate(phone="555")))
    assert updated.phone == "555"
    assert updated.name == "Asha"

    assert asyncio.run(store.delete(customer_id)) is True
    assert store.records == []


def test_load_prefers_backend_rows_and_scopes_by_agent():
    remote = StubRemote(rows=[{"id": "c9", "name": "Ravi"}, {"id": "bad"}])
    store = CustomerStore(LocalCache(), remote, agent_id="agent-7")

    records = asyncio.run(store.load())

    assert [c.id for c in records] == ["c9"]
    assert remote.calls[0] == ("select", {"agent_id": "agent-7"}, "created_at")


def test_without_agent_id_collections_stay_local():
    remote = StubRemote()
    store = CustomerStore(LocalCache(), remote, agent_id=None)

    asyncio.run(store.add(CustomerCreate(name="Offline")))

    assert remote.calls == []


def test_stores_without_backend_config_are_offline():
    stores = Stores(LocalCache(), base_url="https://db.test", api_key=None, agent_id="agent-7")
    assert stores.conversations.remote is None
    assert not stores.checklists.online


def test_saved_itinerary_title_and_status():
    store = ItineraryStore(LocalCache())
    itinerary = generate_local_response("from Mumbai to Goa").itineraries[0]

    saved_id = asyncio.run(store.save(itinerary, conversation_id="conv-1"))
    saved = store.get(saved_id)

    assert saved_id.startswith("local-itin-")
    assert saved.title == "Balanced - Mumbai to Goa"
    assert saved.status == "saved"
    assert saved.total_cost == itinerary.total_cost

    booked = asyncio.run(store.update_status(saved_id, "booked"))
    assert booked.status == "booked"


def test_checklist_items_follow_transport_mode():
    plane = [item.id for item in build_checklist_items(True, "plane")]
    train = [item.id for item in build_checklist_items(True, "train")]
    bus = [item.id for item in build_checklist_items(True, "bus")]

    assert "4" in plane and "4t" not in plane and "7t" not in plane
    assert "4t" in train and "4" not in train and "13t" in train
    assert "4b" in bus and "4" not in bus and "4t" not in bus


def test_domestic_checklist_drops_visa_item():
    labels = [item.label for item in build_checklist_items(False, "plane")]

    assert "Visa requirements checked" not in labels
    assert "Government ID verified" in labels
    assert "Airport transfer arranged" in labels
    assert is_international("Paris") is True
    assert is_international("New Delhi") is False


def test_checklist_status_moves_with_completed_items():
    store = ChecklistStore(LocalCache())
    checklist_id = asyncio.run(store.create("Goa trip", is_international=False, transport_mode="train"))
    checklist = store.get(checklist_id)
    assert checklist.status == "pending"

    first = checklist.items[0].id
    partial = asyncio.run(store.update_item(checklist_id, first, True))
    assert partial.status == "in_progress"

    for item in partial.items:
        done = asyncio.run(store.update_item(checklist_id, item.id, True))
    assert done.status == "completed"
    assert checklist_status(done.items) == "completed"

    assert asyncio.run(store.update_item(checklist_id, "missing", True)) is None


def test_memory_cache_keeps_entries_per_key():
    cache = LocalCache()
    cache.write("a", [{"id": "1"}])
    cache.write("b", [])

    assert cache.read("a") == [{"id": "1"}]
    assert cache.read("b") == []
    assert cache.read("c") is None
