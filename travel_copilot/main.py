from __future__ import annotations

from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from travel_copilot.checklists import is_international
from travel_copilot.config import Settings
from travel_copilot.llm import GatewayError, call_gateway
from travel_copilot.orchestrator import (
    ChatService,
    ConversationNotFound,
    GenerationOrchestrator,
    RequestSequencer,
)
from travel_copilot.rendering import extract_mode_content, render_message
from travel_copilot.schemas import (
    BookingChecklist,
    ChatRequest,
    ChatTurnResponse,
    ChecklistCreate,
    ChecklistItemUpdate,
    Conversation,
    ConversationCreate,
    Customer,
    CustomerCreate,
    CustomerLink,
    CustomerUpdate,
    FlightSearchRequest,
    GatewayChatRequest,
    GenerateRequest,
    GenerationResult,
    RenderRequest,
    RenderResponse,
    SavedItinerary,
    SaveItineraryRequest,
    StatusUpdate,
    TripChecklistCreate,
)
from travel_copilot.store import LocalCache, Stores
from travel_copilot.tools.flight_search import FlightQuery, FlightSearcher

settings = Settings.from_env()

app = FastAPI(title="Travel Copilot API")

# Local UIs (Vite dev server, mobile shells) need to reach the API directly.
# Scope with TRAVEL_COPILOT_ALLOWED_ORIGINS for anything narrower.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

stores = Stores(
    LocalCache(settings.cache_dir),
    base_url=settings.supabase_url,
    api_key=settings.supabase_anon_key,
    access_token=settings.supabase_access_token,
    agent_id=settings.agent_id,
    timeout=settings.http_timeout,
)
orchestrator = GenerationOrchestrator(settings.generator_config())
sequencer = RequestSequencer()
flight_searcher = FlightSearcher(
    settings.amadeus_client_id,
    settings.amadeus_client_secret,
    base_url=settings.amadeus_base_url,
    timeout=settings.http_timeout,
)
_loaded = False


async def _stores() -> Stores:
    """Load every collection once (cache first, then backend) and return them."""
    global _loaded
    if not _loaded:
        await stores.load_all()
        _loaded = True
    return stores


def _not_found(kind: str, record_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} {record_id} not found")


# ---------- generation ----------
@app.post("/api/generate")
async def api_generate(body: GenerateRequest) -> GenerationResult:
    """Itinerary generation without touching any conversation."""
    return await orchestrator.generate(
        [m.model_dump() for m in body.messages],
        body.language,
        body.travel_mode,
        body.tradeoff_preference,
        body.customer_context,
    )


@app.post("/api/chat")
async def api_chat(body: ChatRequest) -> ChatTurnResponse:
    """Primary endpoint consumed by the chat screen."""
    current = await _stores()
    service = ChatService(orchestrator, current.conversations, current.customers, sequencer)
    try:
        return await service.send_message(
            body.content,
            conversation_id=body.conversation_id,
            language=body.language,
            travel_mode=body.travel_mode,
            tradeoff=body.tradeoff_preference,
            customer_ids=body.customer_ids,
        )
    except ConversationNotFound as exc:
        raise _not_found("Conversation", str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.post("/api/render")
async def api_render(body: RenderRequest) -> RenderResponse:
    return RenderResponse(
        content=extract_mode_content(body.content, body.travel_mode),
        blocks=render_message(body.content, body.travel_mode),
    )


@app.post("/api/travel-chat")
async def api_travel_chat(body: GatewayChatRequest) -> JSONResponse:
    """Plain-text assistant reply through the AI gateway."""
    try:
        message = await call_gateway(
            [m.model_dump() for m in body.messages],
            api_key=settings.gateway_api_key,
            base_url=settings.gateway_url,
            model=settings.gateway_model,
            language=body.language,
            tradeoff=body.tradeoff_preference,
        )
    except GatewayError as exc:
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)
    return JSONResponse({"message": message})


@app.post("/api/flights/search")
async def api_flight_search(body: FlightSearchRequest) -> JSONResponse:
    query = FlightQuery(
        origin=body.origin,
        destination=body.destination,
        departure_date=body.departure_date,
        adults=body.adults,
    )
    if query.missing_fields():
        return JSONResponse(
            {"error": "Missing required parameters: origin, destination, departureDate"},
            status_code=400,
        )
    return JSONResponse({"data": await flight_searcher.search(query)})


# ---------- conversations ----------
@app.get("/api/conversations")
async def list_conversations() -> List[Conversation]:
    return (await _stores()).conversations.records


@app.post("/api/conversations", status_code=201)
async def create_conversation(body: ConversationCreate) -> Conversation:
    collection = (await _stores()).conversations
    conversation_id = await collection.create(body.title, body.customer_id)
    return collection.get(conversation_id)


@app.get("/api/conversations/{conversation_id}")
async def get_conversation(conversation_id: str) -> Conversation:
    conversation = (await _stores()).conversations.get(conversation_id)
    if conversation is None:
        raise _not_found("Conversation", conversation_id)
    return conversation


@app.put("/api/conversations/{conversation_id}/customer")
async def link_conversation_customer(conversation_id: str, body: CustomerLink) -> Conversation:
    updated = await (await _stores()).conversations.set_customer(conversation_id, body.customer_id)
    if updated is None:
        raise _not_found("Conversation", conversation_id)
    return updated


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str) -> Dict[str, Any]:
    if not await (await _stores()).conversations.delete(conversation_id):
        raise _not_found("Conversation", conversation_id)
    sequencer.forget(conversation_id)
    return {"deleted": conversation_id}


# ---------- customers ----------
@app.get("/api/customers")
async def list_customers() -> List[Customer]:
    return (await _stores()).customers.records


@app.post("/api/customers", status_code=201)
async def add_customer(body: CustomerCreate) -> Customer:
    collection = (await _stores()).customers
    customer_id = await collection.add(body)
    return collection.get(customer_id)


@app.patch("/api/customers/{customer_id}")
async def update_customer(customer_id: str, body: CustomerUpdate) -> Customer:
    updated = await (await _stores()).customers.update(customer_id, body)
    if updated is None:
        raise _not_found("Customer", customer_id)
    return updated


@app.delete("/api/customers/{customer_id}")
async def delete_customer(customer_id: str) -> Dict[str, Any]:
    if not await (await _stores()).customers.delete(customer_id):
        raise _not_found("Customer", customer_id)
    return {"deleted": customer_id}


# ---------- saved itineraries ----------
@app.get("/api/itineraries")
async def list_itineraries() -> List[SavedItinerary]:
    return (await _stores()).itineraries.records


@app.post("/api/itineraries", status_code=201)
async def save_itinerary(body: SaveItineraryRequest) -> SavedItinerary:
    collection = (await _stores()).itineraries
    saved_id = await collection.save(body.itinerary, body.conversation_id, body.customer_id)
    return collection.get(saved_id)


@app.patch("/api/itineraries/{itinerary_id}/status")
async def update_itinerary_status(itinerary_id: str, body: StatusUpdate) -> SavedItinerary:
    updated = await (await _stores()).itineraries.update_status(itinerary_id, body.status)
    if updated is None:
        raise _not_found("Itinerary", itinerary_id)
    return updated


@app.put("/api/itineraries/{itinerary_id}/customer")
async def link_itinerary_customer(itinerary_id: str, body: CustomerLink) -> SavedItinerary:
    updated = await (await _stores()).itineraries.update_customer(itinerary_id, body.customer_id)
    if updated is None:
        raise _not_found("Itinerary", itinerary_id)
    return updated


@app.delete("/api/itineraries/{itinerary_id}")
async def delete_itinerary(itinerary_id: str) -> Dict[str, Any]:
    if not await (await _stores()).itineraries.delete(itinerary_id):
        raise _not_found("Itinerary", itinerary_id)
    return {"deleted": itinerary_id}


# ---------- booking checklists ----------
@app.get("/api/checklists")
async def list_checklists() -> List[BookingChecklist]:
    return (await _stores()).checklists.records


@app.post("/api/checklists", status_code=201)
async def create_checklist(body: ChecklistCreate) -> BookingChecklist:
    collection = (await _stores()).checklists
    checklist_id = await collection.create(
        body.title,
        body.itinerary_id,
        body.customer_id,
        body.is_international,
        body.transport_mode,
    )
    return collection.get(checklist_id)


@app.post("/api/checklists/from-trip", status_code=201)
async def create_checklist_from_trip(body: TripChecklistCreate) -> BookingChecklist:
    """Checklist for a proposed itinerary, scoped by destination and mode."""
    itinerary = body.itinerary
    collection = (await _stores()).checklists
    checklist_id = await collection.create(
        f"Checklist: {itinerary.flight.departure.city} to {itinerary.flight.arrival.city}",
        itinerary.id,
        body.customer_id,
        is_international(itinerary.flight.arrival.city),
        body.transport_mode or itinerary.transport_mode,
    )
    return collection.get(checklist_id)


@app.patch("/api/checklists/{checklist_id}/items/{item_id}")
async def update_checklist_item(checklist_id: str, item_id: str, body: ChecklistItemUpdate) -> BookingChecklist:
    updated = await (await _stores()).checklists.update_item(checklist_id, item_id, body.completed)
    if updated is None:
        raise _not_found("Checklist item", f"{checklist_id}/{item_id}")
    return updated


@app.delete("/api/checklists/{checklist_id}")
async def delete_checklist(checklist_id: str) -> Dict[str, Any]:
    if not await (await _stores()).checklists.delete(checklist_id):
        raise _not_found("Checklist", checklist_id)
    return {"deleted": checklist_id}
