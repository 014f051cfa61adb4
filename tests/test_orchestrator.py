import asyncio
import json
from typing import Dict, List, Optional

import httpx
import pytest

from travel_copilot.agents.route_extractor import ExplicitRoute
from travel_copilot.config import GeneratorConfig
from travel_copilot.llm import GeminiClient
from travel_copilot.orchestrator import CONNECTION_ERROR_TEXT, GenerationOrchestrator, RequestSequencer
from travel_copilot.schemas import API_FAILED

MODEL_PAYLOAD = {
    "summaries": {"plane": "Direct flights all day.", "bus": "Overnight sleepers."},
    "options": [
        {
            "type": "budget",
            "transport": {"mode": "bus", "name": "VRL", "number": "BUS-9", "duration": "10H", "price": 900},
            "hotel": {"name": "Goa Inn", "price": 1100, "rating": 3},
        },
        {
            "transport": {"mode": "plane", "name": "IndiGo", "number": "6E-1", "duration": "1H 5M", "price": 4100},
            "hotel": {"name": "Goa Bay", "price": 3000, "rating": 4, "nearestHospital": "GMC"},
        },
    ],
}


class FakeGemini:
    """Stands in for GeminiClient; replies are consumed in order."""

    def __init__(self, replies: List[object]):
        self.replies = list(replies)
        self.calls: List[str] = []

    async def generate(self, model: str, prompt: str) -> Optional[str]:
        self.calls.append(model)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _config(**kwargs) -> GeneratorConfig:
    return GeneratorConfig(api_key=kwargs.pop("api_key", "test-key"), **kwargs)


def _user(text: str) -> List[Dict[str, str]]:
    return [{"role": "user", "content": text}]


def test_missing_key_returns_local_fallback_without_network():
    fake = FakeGemini([])
    orchestrator = GenerationOrchestrator(_config(api_key=None), client=fake)

    result = asyncio.run(orchestrator.generate(_user("flights from Mumbai to Bangalore"), travel_mode="plane"))

    assert fake.calls == []
    assert result.is_fallback is True
    assert result.error is None
    plane = result.itineraries[0]
    assert plane.transport_mode == "plane"
    assert plane.type == "balanced"
    assert plane.flight.price == round(4500 * 1.5 * 1.0)
    assert plane.flight.arrival.city == "Bangalore"


def test_all_models_failing_reports_api_failed():
    fake = FakeGemini([httpx.ConnectError("down"), None, "not json at all", '{"summaries": {}}'])
    orchestrator = GenerationOrchestrator(_config(), client=fake)

    result = asyncio.run(orchestrator.generate(_user("from Pune to Goa")))

    assert result.error == API_FAILED
    assert result.itineraries == []
    assert result.text == CONNECTION_ERROR_TEXT
    assert fake.calls == list(orchestrator.config.model_priority)


def test_first_parsable_model_wins():
    wrapped = "Sure! Here you go:\n```json\n" + json.dumps(MODEL_PAYLOAD) + "\n```\nEnjoy {your} trip."
    fake = FakeGemini(['{"options": "nope"}', wrapped, "unused"])
    orchestrator = GenerationOrchestrator(_config(), client=fake)

    result = asyncio.run(orchestrator.generate(_user("from Pune to Goa on Monday")))

    assert result.error is None
    assert fake.calls == ["gemini-2.5-flash", "gemini-2.0-flash"]
    assert [i.transport_mode for i in result.itineraries] == ["bus", "plane"]
    assert [i.type for i in result.itineraries] == ["budget", "balanced"]
    assert result.itineraries[1].total_cost == 4100 + 3000 * 2
    assert result.itineraries[1].flight.departure.city == "Pune"
    assert "<PLANE>" in result.text and "Direct flights all day." in result.text
    assert "Details for train travel." in result.text


def test_invalid_option_moves_to_next_model():
    broken = {"options": [{"transport": {"mode": "plane", "name": "X"}, "hotel": {"name": "Y"}}]}
    fake = FakeGemini([json.dumps(broken), json.dumps(MODEL_PAYLOAD)])
    orchestrator = GenerationOrchestrator(_config(), client=fake)

    result = asyncio.run(orchestrator.generate(_user("from Pune to Goa")))

    assert len(fake.calls) == 2
    assert len(result.itineraries) == 2


def test_explicit_route_skips_text_heuristics():
    fake = FakeGemini([json.dumps(MODEL_PAYLOAD)])
    orchestrator = GenerationOrchestrator(_config(), client=fake)

    result = asyncio.run(
        orchestrator.generate(
            _user("something vague"),
            route_source=ExplicitRoute(from_city="Surat", to_city="Ooty"),
        )
    )
    assert result.itineraries[0].flight.departure.city == "Surat"
    assert result.itineraries[0].hotel.city == "Ooty"


def test_unexpected_fault_propagates():
    fake = FakeGemini([RuntimeError("boom")])
    orchestrator = GenerationOrchestrator(_config(), client=fake)

    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.generate(_user("from Pune to Goa")))


# ---- GeminiClient endpoint variants ----
class DummyResponse:
    def __init__(self, status_code: int, payload: object = None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


class DummyAsyncClient:
    def __init__(self, responses: List[DummyResponse], log: List[str], *args, **kwargs):
        self.responses = responses
        self.log = log

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def post(self, url, params=None, json=None, headers=None):
        self.log.append(url)
        assert params == {"key": "test-key"}
        assert json["contents"][0]["parts"][0]["text"].endswith("User Request: hi")
        return self.responses.pop(0)


def test_gemini_client_falls_back_to_secondary_path(monkeypatch):
    log: List[str] = []
    responses = [
        DummyResponse(404),
        DummyResponse(200, {"candidates": [{"content": {"parts": [{"text": "{\"options\": []}"}]}}]}),
    ]
    monkeypatch.setattr(httpx, "AsyncClient", lambda *a, **kw: DummyAsyncClient(responses, log, *a, **kw))

    client = GeminiClient(_config())
    text = asyncio.run(client.generate("gemini-2.5-flash", "prompt\n\nUser Request: hi"))

    assert text == '{"options": []}'
    assert log == [
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent",
        "https://generativelanguage.googleapis.com/v1/models/gemini-2.5-flash:generateContent",
    ]


def test_gemini_client_returns_none_when_both_paths_fail(monkeypatch):
    log: List[str] = []
    responses = [DummyResponse(500), DummyResponse(503)]
    monkeypatch.setattr(httpx, "AsyncClient", lambda *a, **kw: DummyAsyncClient(responses, log, *a, **kw))

    text = asyncio.run(GeminiClient(_config()).generate("gemini-1.5-flash", "User Request: hi"))

    assert text is None
    assert len(log) == 2


def test_request_sequencer_only_latest_token_is_current():
    sequencer = RequestSequencer()
    first = sequencer.issue("conv-1")
    other = sequencer.issue("conv-2")
    second = sequencer.issue("conv-1")

    assert second > first
    assert not sequencer.is_current("conv-1", first)
    assert sequencer.is_current("conv-1", second)
    assert sequencer.is_current("conv-2", other)
    assert not sequencer.is_current("conv-3", first)
