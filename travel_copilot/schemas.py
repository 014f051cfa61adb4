from typing import List, Dict, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

TransportMode = Literal["plane", "train", "bus"]
Tier = Literal["budget", "balanced", "comfort"]
PriceTrend = Literal["rising", "dropping", "stable"]

TRANSPORT_MODES: tuple[TransportMode, ...] = ("plane", "train", "bus")
API_FAILED = "API_FAILED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------- Itinerary models -------
class Endpoint(CamelModel):
    model_config = ConfigDict(frozen=True)

    city: str
    airport: str
    time: str
    date: str


class TransportLeg(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    airline: str
    flight_no: str
    departure: Endpoint
    arrival: Endpoint
    duration: str
    price: float = Field(..., gt=0)
    stops: int = Field(0, ge=0)
    is_red_eye: bool = False
    comfort_score: float = Field(..., ge=0, le=10)


class Hotel(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    city: str
    rating: float = Field(..., ge=0, le=5)
    price_per_night: float = Field(..., gt=0)
    amenities: List[str] = Field(default_factory=list)
    room_type: str
    comfort_score: float = Field(..., ge=0, le=10)
    nearest_hospital: Optional[str] = None
    recommended_cafe: Optional[str] = None


class Itinerary(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: Tier
    transport_mode: TransportMode
    flight: TransportLeg
    hotel: Hotel
    total_cost: float
    total_duration: str
    explanation: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    price_trend: PriceTrend = "stable"
    confidence_score: float = Field(..., ge=0, le=100)


class ModeSegment(BaseModel):
    """One ``<MODE>...</MODE>`` block of a tagged response."""

    model_config = ConfigDict(frozen=True)

    mode: TransportMode
    body: str


class GenerationResult(CamelModel):
    text: str
    itineraries: List[Itinerary] = Field(default_factory=list)
    error: Optional[str] = None
    is_fallback: bool = False


# ------- Conversation models -------
class ChatMessage(CamelModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    itineraries: List[Itinerary] = Field(default_factory=list)
    show_tradeoff: Optional[bool] = None


class Conversation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    messages: List[ChatMessage] = Field(default_factory=list)
    customer_id: Optional[str] = None
    created_at: str
    updated_at: str


# ------- Customer models -------
class CustomerPreferences(CamelModel):
    budget_sensitivity: int = Field(50, ge=0, le=100)
    preferred_airlines: List[str] = Field(default_factory=list)
    hotel_type: Literal["budget", "standard", "luxury", "any"] = "any"
    comfort_priority: int = Field(50, ge=0, le=100)
    meal_preference: str = "any"
    seat_preference: str = "any"
    special_needs: List[str] = Field(default_factory=list)


class Customer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    preferences: Optional[CustomerPreferences] = None
    created_at: Optional[str] = None


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    preferences: Optional[CustomerPreferences] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    preferences: Optional[CustomerPreferences] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("name cannot be null or blank")
        return value


# ------- Saved itineraries & checklists -------
class SavedItinerary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    itinerary_type: str
    details: Itinerary
    total_cost: Optional[float] = None
    status: Optional[str] = None
    customer_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: str
    updated_at: str


class ChecklistItem(BaseModel):
    id: str
    label: str
    completed: bool = False
    category: Literal["documents", "payments", "confirmations", "other"]


class BookingChecklist(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    itinerary_id: Optional[str] = None
    customer_id: Optional[str] = None
    items: List[ChecklistItem] = Field(default_factory=list)
    status: Literal["pending", "in_progress", "completed"] = "pending"
    created_at: str
    updated_at: str


# ------- Request models -------
class MessageIn(BaseModel):
    role: Literal["user", "assistant", "system"] = "user"
    content: str


class GenerateRequest(CamelModel):
    messages: List[MessageIn] = Field(..., min_length=1)
    language: str = "en"
    travel_mode: TransportMode = "plane"
    tradeoff_preference: int = Field(50, ge=0, le=100)
    customer_context: str = ""


class ChatRequest(CamelModel):
    content: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    language: str = "en"
    travel_mode: TransportMode = "plane"
    tradeoff_preference: int = Field(50, ge=0, le=100)
    customer_ids: List[str] = Field(default_factory=list)


class RenderRequest(CamelModel):
    content: str
    travel_mode: TransportMode = "plane"


class GatewayChatRequest(CamelModel):
    messages: List[MessageIn] = Field(default_factory=list)
    language: Optional[str] = None
    tradeoff_preference: Optional[int] = None
    travel_mode: Optional[TransportMode] = None


class FlightSearchRequest(CamelModel):
    origin: str = ""
    destination: str = ""
    departure_date: str = ""
    adults: int = Field(1, ge=1)


class SaveItineraryRequest(BaseModel):
    itinerary: Itinerary
    conversation_id: Optional[str] = None
    customer_id: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class CustomerLink(BaseModel):
    customer_id: Optional[str] = None


class ConversationCreate(BaseModel):
    title: str = "New Conversation"
    customer_id: Optional[str] = None


class ChecklistCreate(BaseModel):
    title: str = Field(..., min_length=1)
    itinerary_id: Optional[str] = None
    customer_id: Optional[str] = None
    is_international: bool = True
    transport_mode: TransportMode = "plane"


class TripChecklistCreate(BaseModel):
    itinerary: Itinerary
    customer_id: Optional[str] = None
    transport_mode: Optional[TransportMode] = None


class ChecklistItemUpdate(BaseModel):
    completed: bool


class RenderedSpan(BaseModel):
    kind: Literal["text", "bold", "link"]
    text: str
    url: Optional[str] = None


class RenderedBlock(BaseModel):
    kind: Literal["heading", "bullet", "rule", "paragraph"]
    spans: List[RenderedSpan] = Field(default_factory=list)


class RenderResponse(BaseModel):
    content: str
    blocks: List[RenderedBlock] = Field(default_factory=list)


class ChatTurnResponse(CamelModel):
    conversation_id: str
    message: Optional[ChatMessage] = None
    applied: bool = True
    error: Optional[str] = None
    meta: Dict[str, object] = Field(default_factory=dict)
