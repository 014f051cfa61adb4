# travel_copilot/orchestrator.py
from __future__ import annotations

import os
import itertools
import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from travel_copilot.agents.customer_context import build_customer_context
from travel_copilot.agents.itinerary_mapper import map_options
from travel_copilot.agents.local_fallback import fallback_itineraries, generate_local_response
from travel_copilot.agents.response_formatter import format_mode_sections
from travel_copilot.agents.route_extractor import HeuristicRoute, RouteSource, resolve_route
from travel_copilot.config import GeneratorConfig, Settings
from travel_copilot.llm import GeminiClient, build_itinerary_prompt, extract_json_object
from travel_copilot.schemas import API_FAILED, ChatMessage, ChatTurnResponse, GenerationResult
from travel_copilot.store import ConversationStore, CustomerStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRAVEL_COPILOT_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

CONNECTION_ERROR_TEXT = (
    "⚠️ **Connection Error:** I was unable to fetch live travel data. Please check your connection."
)
EMPTY_REPLY_TEXT = "I apologize, but I could not generate a response."
SYSTEM_ERROR_TEMPLATE = """[System Error] I couldn't connect to the AI service.
Error details: {error}

However, here are some standard options based on your request:"""


class ConversationNotFound(LookupError):
    pass


def _content(message: Any) -> str:
    if isinstance(message, Mapping):
        return str(message.get("content") or "")
    return str(getattr(message, "content", "") or "")


# ---------- generation ----------
class GenerationOrchestrator:
    """Walk the model priority list until one returns usable itineraries."""

    def __init__(self, config: GeneratorConfig, client: Optional[GeminiClient] = None):
        self.config = config
        self.client = client or GeminiClient(config)

    async def generate(
        self,
        messages: Sequence[Any],
        language: str = "en",
        travel_mode: str = "plane",
        tradeoff: int = 50,
        customer_context: str = "",
        *,
        route_source: Optional[RouteSource] = None,
    ) -> GenerationResult:
        """Produce tagged text plus itineraries for the latest user message.

        Without an API key the local fallback is returned straight away. When
        every model/endpoint combination fails the result carries
        ``error="API_FAILED"`` and no itineraries. Faults other than transport
        errors and unusable payloads propagate.
        """
        user_message = _content(messages[-1]) if messages else ""
        route = resolve_route(route_source or HeuristicRoute(user_message))

        if not self.config.api_key:
            logger.warning("Missing Gemini API key - using local fallback")
            return generate_local_response(user_message, travel_mode, tradeoff, route=route)

        prompt = build_itinerary_prompt(
            user_message,
            language=language,
            from_city=route.from_city,
            to_city=route.to_city,
            tradeoff=tradeoff,
            customer_context=customer_context,
        )

        for model in self.config.model_priority:
            logger.info("Attempting itinerary generation with model %s", model)
            try:
                text = await self.client.generate(model, prompt)
            except (httpx.HTTPError, ValueError):
                logger.warning("Model %s failed", model, exc_info=True)
                continue
            if text is None:
                continue

            try:
                parsed = extract_json_object(text)
                options = parsed.get("options")
                if not isinstance(options, list):
                    raise ValueError("response has no options list")
                itineraries = map_options(options, route.from_city, route.to_city)
            except ValueError as exc:
                logger.warning("Model %s returned an unusable payload: %s", model, exc)
                continue

            logger.info("Model %s produced %d itinerary option(s)", model, len(itineraries))
            return GenerationResult(
                text=format_mode_sections(parsed.get("summaries"), itineraries),
                itineraries=itineraries,
            )

        logger.error("All %d model(s) failed; reporting %s", len(self.config.model_priority), API_FAILED)
        return GenerationResult(text=CONNECTION_ERROR_TEXT, itineraries=[], error=API_FAILED)


async def generate_travel_response(
    messages: Sequence[Any],
    language: str = "en",
    travel_mode: str = "plane",
    tradeoff: int = 50,
    customer_context: str = "",
    *,
    config: Optional[GeneratorConfig] = None,
) -> GenerationResult:
    orchestrator = GenerationOrchestrator(config or Settings.from_env().generator_config())
    return await orchestrator.generate(messages, language, travel_mode, tradeoff, customer_context)


# ---------- chat turns ----------
class RequestSequencer:
    """Issue increasing tokens per conversation; only the newest one is current."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def issue(self, key: str) -> int:
        token = next(self._counter)
        self._latest[key] = token
        return token

    def is_current(self, key: str, token: int) -> bool:
        return self._latest.get(key) == token

    def forget(self, key: str) -> None:
        self._latest.pop(key, None)


def _message_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class ChatService:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        conversations: ConversationStore,
        customers: CustomerStore,
        sequencer: Optional[RequestSequencer] = None,
    ):
        self.orchestrator = orchestrator
        self.conversations = conversations
        self.customers = customers
        self.sequencer = sequencer or RequestSequencer()

    async def send_message(
        self,
        content: str,
        *,
        conversation_id: Optional[str] = None,
        language: str = "en",
        travel_mode: str = "plane",
        tradeoff: int = 50,
        customer_ids: Sequence[str] = (),
    ) -> ChatTurnResponse:
        """Run one user turn and store the assistant reply on the conversation.

        A reply is only written back when no newer turn was started on the
        same conversation in the meantime.
        """
        content = content.strip()
        if not content:
            raise ValueError("message content is empty")

        conversation = None
        if conversation_id:
            conversation = self.conversations.get(conversation_id)
            if conversation is None:
                raise ConversationNotFound(conversation_id)

        primary_customer = customer_ids[0] if customer_ids else None
        history: List[ChatMessage] = []
        if conversation is None:
            title = content[:50] + ("..." if len(content) > 50 else "")
            key = await self.conversations.create(title, primary_customer)
        else:
            key = conversation.id
            history = list(conversation.messages)
        # issued before the user message is written so tokens follow message order
        token = self.sequencer.issue(key)

        user_message = ChatMessage(id=_message_id(), role="user", content=content)
        messages = [*history, user_message]
        await self.conversations.update(key, messages)

        context = build_customer_context(self.customers.find_many(list(customer_ids)))
        wire = [{"role": m.role, "content": m.content} for m in messages]
        error: Optional[str] = None
        try:
            result = await self.orchestrator.generate(wire, language, travel_mode, tradeoff, context)
            failed = result.error == API_FAILED
            error = result.error
            assistant = ChatMessage(
                id=_message_id(),
                role="assistant",
                content=result.text or EMPTY_REPLY_TEXT,
                itineraries=[] if failed else result.itineraries,
                show_tradeoff=not failed,
            )
        except Exception as exc:  # any fault still yields renderable itineraries
            logger.exception("Generation failed for conversation %s", key)
            error = str(exc) or type(exc).__name__
            assistant = ChatMessage(
                id=_message_id(),
                role="assistant",
                content=SYSTEM_ERROR_TEMPLATE.format(error=error),
                itineraries=fallback_itineraries(content, travel_mode, tradeoff),
                show_tradeoff=True,
            )

        if not self.sequencer.is_current(key, token):
            logger.info("Discarding stale reply for conversation %s (token %d)", key, token)
            return ChatTurnResponse(conversation_id=key, message=assistant, applied=False, error=error)

        stored = self.conversations.get(key)
        transcript = list(stored.messages) if stored else messages
        await self.conversations.update(key, [*transcript, assistant], customer_id=primary_customer)
        return ChatTurnResponse(
            conversation_id=key,
            message=assistant,
            applied=True,
            error=error,
            meta={"token": token, "itinerary_count": len(assistant.itineraries)},
        )
