"""Traveller profile text injected into the itinerary prompt."""
from __future__ import annotations

from typing import List, Sequence

from travel_copilot.schemas import Customer


def describe_customer(customer: Customer) -> str:
    context = f"Name: {customer.name}. "
    if customer.notes:
        context += f"Notes: {customer.notes}. "
    prefs = customer.preferences
    if prefs is not None:
        context += (
            f"Preferences: Budget Sensitivity {prefs.budget_sensitivity}%, "
            f"Comfort Priority {prefs.comfort_priority}%. "
        )
        if prefs.preferred_airlines:
            context += f"Preferred Airlines: {', '.join(prefs.preferred_airlines)}. "
        if prefs.hotel_type != "any":
            context += f"Preferred Hotel: {prefs.hotel_type}. "
        if prefs.seat_preference != "any":
            context += f"Seat: {prefs.seat_preference}. "
        if prefs.special_needs:
            context += f"Special Needs: {', '.join(prefs.special_needs)}. "
    return context


def build_customer_context(customers: Sequence[Customer]) -> str:
    """One line per traveller; several travellers are framed as a group trip."""
    lines: List[str] = [describe_customer(c) for c in customers]
    if not lines:
        return ""
    if len(lines) > 1:
        return f"FAMILY/GROUP TRIP ({len(lines)} people): \n" + "\n".join(lines)
    return lines[0]
