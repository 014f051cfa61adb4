from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import travel_copilot.main as main
from travel_copilot.config import GeneratorConfig
from travel_copilot.llm import GatewayError
from travel_copilot.orchestrator import GenerationOrchestrator, RequestSequencer
from travel_copilot.store import LocalCache, Stores


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "orchestrator", GenerationOrchestrator(GeneratorConfig(api_key=None)))
    monkeypatch.setattr(main, "stores", Stores(LocalCache()))
    monkeypatch.setattr(main, "sequencer", RequestSequencer())
    monkeypatch.setattr(main, "_loaded", False)
    return TestClient(main.app)


def test_generate_without_key_returns_local_options(client):
    response = client.post(
        "/api/generate",
        json={"messages": [{"role": "user", "content": "from Mumbai to Goa"}], "travelMode": "train"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["isFallback"] is True
    assert "is_fallback" not in body
    assert [i["transportMode"] for i in body["itineraries"]] == ["plane", "train", "bus"]
    assert "<TRAIN>" in body["text"]


def test_generate_requires_messages(client):
    assert client.post("/api/generate", json={"messages": []}).status_code == 422


def test_chat_creates_and_continues_conversation(client):
    first = client.post("/api/chat", json={"content": "from Pune to Goa"}).json()
    assert first["applied"] is True
    assert len(first["message"]["itineraries"]) == 3

    conversation_id = first["conversationId"]
    client.post("/api/chat", json={"content": "and by bus?", "conversationId": conversation_id})

    stored = client.get(f"/api/conversations/{conversation_id}").json()
    assert [m["role"] for m in stored["messages"]] == ["user", "assistant", "user", "assistant"]
    assert client.post("/api/chat", json={"content": "hi", "conversationId": "nope"}).status_code == 404


def test_render_extracts_active_mode(client):
    content = "<PLANE>\n### Fly\n</PLANE>\n<BUS>\n* Ride\n</BUS>\n"

    body = client.post("/api/render", json={"content": content, "travelMode": "bus"}).json()

    assert body["content"] == "* Ride"
    assert body["blocks"] == [{"kind": "bullet", "spans": [{"kind": "text", "text": "Ride", "url": None}]}]


def test_travel_chat_maps_gateway_errors(client, monkeypatch):
    monkeypatch.setattr(main, "call_gateway", AsyncMock(side_effect=GatewayError("Rate limit exceeded.", 429)))
    response = client.post("/api/travel-chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded."}

    monkeypatch.setattr(main, "call_gateway", AsyncMock(return_value="Take the train."))
    response = client.post("/api/travel-chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert response.json() == {"message": "Take the train."}


def test_flight_search_validates_required_fields(client):
    response = client.post("/api/flights/search", json={"origin": "BOM"})

    assert response.status_code == 400
    assert "departureDate" in response.json()["error"]


def test_customer_crud(client):
    created = client.post("/api/customers", json={"name": "Asha", "email": "asha@example.com"})
    assert created.status_code == 201
    customer_id = created.json()["id"]

    patched = client.patch(f"/api/customers/{customer_id}", json={"notes": "vegetarian"})
    assert patched.json()["notes"] == "vegetarian"
    assert patched.json()["email"] == "asha@example.com"

    assert [c["id"] for c in client.get("/api/customers").json()] == [customer_id]
    assert client.delete(f"/api/customers/{customer_id}").json() == {"deleted": customer_id}
    assert client.delete(f"/api/customers/{customer_id}").status_code == 404


def test_customer_patch_rejects_null_name(client):
    customer_id = client.post("/api/customers", json={"name": "Asha"}).json()["id"]

    assert client.patch(f"/api/customers/{customer_id}", json={"name": None}).status_code == 422
    assert client.patch(f"/api/customers/{customer_id}", json={"name": "  "}).status_code == 422
    assert client.get("/api/customers").json()[0]["name"] == "Asha"


def test_save_itinerary_and_build_checklist(client):
    itinerary = client.post(
        "/api/generate",
        json={"messages": [{"role": "user", "content": "from Delhi to Jaipur"}]},
    ).json()["itineraries"][1]

    saved = client.post("/api/itineraries", json={"itinerary": itinerary})
    assert saved.status_code == 201
    saved_id = saved.json()["id"]
    assert saved.json()["title"] == "Balanced - Delhi to Jaipur"

    status = client.patch(f"/api/itineraries/{saved_id}/status", json={"status": "booked"})
    assert status.json()["status"] == "booked"

    checklist = client.post("/api/checklists/from-trip", json={"itinerary": itinerary}).json()
    labels = [item["label"] for item in checklist["items"]]
    assert checklist["title"] == "Checklist: Delhi to Jaipur"
    assert "Train tickets booked" in labels
    assert "Visa requirements checked" not in labels

    item_id = checklist["items"][0]["id"]
    updated = client.patch(f"/api/checklists/{checklist['id']}/items/{item_id}", json={"completed": True})
    assert updated.json()["status"] == "in_progress"
    assert client.patch(f"/api/checklists/{checklist['id']}/items/zzz", json={"completed": True}).status_code == 404


def test_unknown_records_return_404(client):
    assert client.get("/api/conversations/missing").status_code == 404
    assert client.patch("/api/itineraries/missing/status", json={"status": "x"}).status_code == 404
    assert client.delete("/api/checklists/missing").status_code == 404


def test_deleting_conversation_drops_its_request_token(client):
    conversation_id = client.post("/api/chat", json={"content": "from Pune to Goa"}).json()["conversationId"]
    assert conversation_id in main.sequencer._latest

    assert client.delete(f"/api/conversations/{conversation_id}").json() == {"deleted": conversation_id}
    assert conversation_id not in main.sequencer._latest
    assert client.get(f"/api/conversations/{conversation_id}").status_code == 404
