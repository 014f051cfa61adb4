"""Booking checklist templates."""
from __future__ import annotations

from typing import List, Sequence

from travel_copilot.schemas import ChecklistItem

DEFAULT_CHECKLIST_ITEMS: tuple[ChecklistItem, ...] = (
    ChecklistItem(id="1", label="Passport/ID verified", category="documents"),
    ChecklistItem(id="2", label="Visa requirements checked", category="documents"),
    ChecklistItem(id="3", label="Travel insurance obtained", category="documents"),
    ChecklistItem(id="4", label="Flight tickets booked", category="confirmations"),
    ChecklistItem(id="4t", label="Train tickets booked", category="confirmations"),
    ChecklistItem(id="5", label="Hotel reservation confirmed", category="confirmations"),
    ChecklistItem(id="6", label="Restaurant reservations made", category="confirmations"),
    ChecklistItem(id="7", label="Airport/Station transfer arranged", category="confirmations"),
    ChecklistItem(id="7t", label="PNR status verified", category="confirmations"),
    ChecklistItem(id="8", label="Initial payment received", category="payments"),
    ChecklistItem(id="9", label="Full payment received", category="payments"),
    ChecklistItem(id="10", label="Payment confirmation sent", category="payments"),
    ChecklistItem(id="11", label="Itinerary sent to customer", category="other"),
    ChecklistItem(id="12", label="Emergency contacts shared", category="other"),
    ChecklistItem(id="13t", label="Coach & Berth preferences confirmed", category="other"),
)

DOMESTIC_CITIES = (
    "mumbai",
    "delhi",
    "bangalore",
    "chennai",
    "kolkata",
    "hyderabad",
    "pune",
    "goa",
    "ahmedabad",
    "jaipur",
)

TRANSFER_LABEL = "Airport/Station transfer arranged"


def build_checklist_items(is_international: bool = True, transport_mode: str = "plane") -> List[ChecklistItem]:
    """Default items narrowed to the trip's scope and transport mode.

    Train-only items carry a ``t`` suffix in their id.
    """
    items = [item.model_copy() for item in DEFAULT_CHECKLIST_ITEMS]

    if not is_international:
        items = [
            item.model_copy(update={"label": "Government ID verified"}) if item.label == "Passport/ID verified" else item
            for item in items
            if item.label != "Visa requirements checked"
        ]

    if transport_mode == "train":
        items = [item for item in items if "4" not in item.id or item.id == "4t"]
        items = [_relabel(item, TRANSFER_LABEL, "Station transfer arranged") for item in items]
    elif transport_mode == "plane":
        items = [item for item in items if not item.id.endswith("t")]
        items = [_relabel(item, TRANSFER_LABEL, "Airport transfer arranged") for item in items]
    else:
        items = [item for item in items if not item.id.endswith("t") and item.id != "4"]
        if transport_mode == "bus":
            items.append(ChecklistItem(id="4b", label="Bus tickets booked", category="confirmations"))
    return items


def checklist_status(items: Sequence[ChecklistItem]) -> str:
    done = sum(1 for item in items if item.completed)
    if done == 0:
        return "pending"
    return "completed" if done == len(items) else "in_progress"


def is_international(destination_city: str) -> bool:
    city = (destination_city or "").lower()
    return not any(domestic in city for domestic in DOMESTIC_CITIES)


def _relabel(item: ChecklistItem, old: str, new: str) -> ChecklistItem:
    return item.model_copy(update={"label": new}) if item.label == old else item
