"""Persisted collections with a local JSON cache in front of the hosted backend.

Every collection is read from the local cache first, then refreshed from the
remote table when one is configured. Mutations are applied locally (and
written back to the cache) before the remote call, so a failing backend only
costs durability, never the user's edit.
"""
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar, Dict, Generic, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from travel_copilot.checklists import build_checklist_items, checklist_status
from travel_copilot.schemas import (
    BookingChecklist,
    ChatMessage,
    Conversation,
    Customer,
    CustomerCreate,
    CustomerUpdate,
    Itinerary,
    SavedItinerary,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRAVEL_COPILOT_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

CONVERSATIONS_KEY = "travel_copilot_conversations"
CUSTOMERS_KEY = "travel_copilot_customers"
ITINERARIES_KEY = "travel_copilot_itineraries"
CHECKLISTS_KEY = "travel_copilot_checklists"

_UNSET: Any = object()

T = TypeVar("T", bound=BaseModel)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalCache:
    """Key/value JSON store, one file per key (in memory when no directory)."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory else None
        self._memory: Dict[str, str] = {}
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)

    def read(self, key: str) -> Optional[List[Dict[str, Any]]]:
        raw = self._read_raw(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Discarding unreadable cache entry %s", key, exc_info=True)
            return None
        if not isinstance(data, list):
            logger.error("Cache entry %s is not a list; ignoring", key)
            return None
        return data

    def write(self, key: str, records: List[Dict[str, Any]]) -> None:
        raw = json.dumps(records, ensure_ascii=False)
        if self.directory is None:
            self._memory[key] = raw
            return
        (self.directory / f"{key}.json").write_text(raw, encoding="utf-8")

    def _read_raw(self, key: str) -> Optional[str]:
        if self.directory is None:
            return self._memory.get(key)
        path = self.directory / f"{key}.json"
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")


class RemoteTable:
    """PostgREST table client (the hosted backend's REST surface)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str,
        *,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.url = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.table = table
        self.timeout = timeout
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }

    async def select(self, filters: Dict[str, Any], order: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"select": "*", **self._eq(filters)}
        if order:
            params["order"] = f"{order}.desc"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.url, params=params, headers=self.headers)
            response.raise_for_status()
            data = response.json()
        return data if isinstance(data, list) else []

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        headers = {**self.headers, "Prefer": "return=representation"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=record, headers=headers)
            response.raise_for_status()
            data = response.json()
        if isinstance(data, list):
            return data[0] if data else {}
        return data if isinstance(data, dict) else {}

    async def update(self, filters: Dict[str, Any], values: Dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.patch(self.url, params=self._eq(filters), json=values, headers=self.headers)
            response.raise_for_status()

    async def delete(self, filters: Dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.delete(self.url, params=self._eq(filters), headers=self.headers)
            response.raise_for_status()

    @staticmethod
    def _eq(filters: Dict[str, Any]) -> Dict[str, str]:
        return {column: f"eq.{value}" for column, value in filters.items()}


class CachedCollection(Generic[T]):
    cache_key: ClassVar[str]
    model: ClassVar[Type[BaseModel]]
    order_column: ClassVar[str] = "created_at"
    agent_scoped: ClassVar[bool] = True
    id_prefix: ClassVar[str] = "local"

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[RemoteTable] = None,
        agent_id: Optional[str] = None,
    ):
        self.cache = cache
        self.remote = remote
        self.agent_id = agent_id
        self._records: List[T] = []

    @property
    def online(self) -> bool:
        return self.remote is not None and bool(self.agent_id)

    @property
    def records(self) -> List[T]:
        return list(self._records)

    def get(self, record_id: str) -> Optional[T]:
        return next((r for r in self._records if r.id == record_id), None)  # type: ignore[attr-defined]

    async def load(self) -> List[T]:
        cached = self.cache.read(self.cache_key)
        if cached is not None:
            self._records = self._parse_many(cached)
        if not self.online:
            return self.records

        try:
            rows = await self.remote.select(self._scope(), order=self.order_column)  # type: ignore[union-attr]
        except httpx.HTTPError:
            logger.warning("Failed to fetch %s from backend; keeping local data", self.cache_key, exc_info=True)
            return self.records
        self._replace(self._parse_many(rows))
        logger.info("Loaded %d record(s) for %s", len(self._records), self.cache_key)
        return self.records

    # ---- helpers for subclasses ----
    def _replace(self, records: List[T]) -> None:
        self._records = list(records)
        self.cache.write(self.cache_key, [self._dump(r) for r in self._records])

    def _dump(self, record: T) -> Dict[str, Any]:
        return record.model_dump(mode="json", by_alias=True)

    def _parse_many(self, rows: List[Any]) -> List[T]:
        parsed: List[T] = []
        for row in rows:
            try:
                parsed.append(self.model.model_validate(row))  # type: ignore[arg-type]
            except ValidationError:
                logger.warning("Skipping malformed %s row", self.cache_key, exc_info=True)
        return parsed

    def _scope(self, **filters: Any) -> Dict[str, Any]:
        if self.agent_scoped and self.agent_id:
            filters["agent_id"] = self.agent_id
        return filters

    def _local_id(self) -> str:
        return f"{self.id_prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"

    async def _create(self, record: T) -> str:
        self._replace([record, *self._records])
        if not self.online:
            return record.id  # type: ignore[attr-defined]

        row = {k: v for k, v in self._dump(record).items() if k != "id"}
        row["agent_id"] = self.agent_id
        try:
            data = await self.remote.insert(row)  # type: ignore[union-attr]
        except httpx.HTTPError:
            logger.warning("Failed to create %s remotely; using local id", self.cache_key, exc_info=True)
            return record.id  # type: ignore[attr-defined]
        if not data.get("id"):
            return record.id  # type: ignore[attr-defined]

        stored = self._merge_remote(record, data)
        self._replace([stored if r.id == record.id else r for r in self._records])  # type: ignore[attr-defined]
        return stored.id  # type: ignore[attr-defined]

    def _merge_remote(self, record: T, data: Dict[str, Any]) -> T:
        try:
            return self.model.model_validate({**self._dump(record), **data})  # type: ignore[return-value]
        except ValidationError:
            return record.model_copy(update={"id": str(data["id"])})

    async def _patch(self, record_id: str, changes: Dict[str, Any], remote_values: Dict[str, Any]) -> Optional[T]:
        current = self.get(record_id)
        if current is None:
            return None
        updated = self.model.model_validate({**current.model_dump(), **changes})
        self._replace([updated if r.id == record_id else r for r in self._records])  # type: ignore[misc,attr-defined]
        if self.online:
            try:
                await self.remote.update(self._scope(id=record_id), remote_values)  # type: ignore[union-attr]
            except httpx.HTTPError:
                logger.warning("Failed to update %s %s remotely (local state only)", self.cache_key, record_id, exc_info=True)
        return updated  # type: ignore[return-value]

    async def _remove(self, record_id: str) -> bool:
        existed = self.get(record_id) is not None
        self._replace([r for r in self._records if r.id != record_id])  # type: ignore[attr-defined]
        if self.online:
            try:
                await self.remote.delete(self._scope(id=record_id))  # type: ignore[union-attr]
            except httpx.HTTPError:
                logger.warning("Failed to delete %s %s remotely (local state only)", self.cache_key, record_id, exc_info=True)
        return existed


class ConversationStore(CachedCollection[Conversation]):
    cache_key = CONVERSATIONS_KEY
    model = Conversation
    order_column = "updated_at"

    async def create(self, title: str = "New Conversation", customer_id: Optional[str] = None) -> str:
        stamp = now_iso()
        conversation = Conversation(
            id=self._local_id(),
            title=title,
            messages=[],
            customer_id=customer_id,
            created_at=stamp,
            updated_at=stamp,
        )
        return await self._create(conversation)

    async def update(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        title: Optional[str] = None,
        customer_id: Any = _UNSET,
    ) -> Optional[Conversation]:
        stamp = now_iso()
        changes: Dict[str, Any] = {"messages": list(messages), "updated_at": stamp}
        if title:
            changes["title"] = title
        if customer_id is not _UNSET:
            changes["customer_id"] = customer_id
        remote_values = {
            **{k: v for k, v in changes.items() if k != "messages"},
            "messages": [m.model_dump(mode="json", by_alias=True) for m in messages],
        }
        return await self._patch(conversation_id, changes, remote_values)

    async def set_customer(self, conversation_id: str, customer_id: Optional[str]) -> Optional[Conversation]:
        changes = {"customer_id": customer_id, "updated_at": now_iso()}
        return await self._patch(conversation_id, changes, dict(changes))

    async def delete(self, conversation_id: str) -> bool:
        return await self._remove(conversation_id)


class CustomerStore(CachedCollection[Customer]):
    cache_key = CUSTOMERS_KEY
    model = Customer

    async def add(self, data: CustomerCreate) -> str:
        customer = Customer(id=self._local_id(), created_at=now_iso(), **data.model_dump())
        return await self._create(customer)

    async def update(self, customer_id: str, updates: CustomerUpdate) -> Optional[Customer]:
        changes = updates.model_dump(exclude_unset=True)
        remote_values = updates.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return await self._patch(customer_id, changes, remote_values)

    async def delete(self, customer_id: str) -> bool:
        return await self._remove(customer_id)

    def find_many(self, customer_ids: List[str]) -> List[Customer]:
        found = [self.get(cid) for cid in customer_ids]
        return [c for c in found if c is not None]


class ItineraryStore(CachedCollection[SavedItinerary]):
    cache_key = ITINERARIES_KEY
    model = SavedItinerary
    id_prefix = "local-itin"

    async def save(
        self,
        itinerary: Itinerary,
        conversation_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> str:
        stamp = now_iso()
        saved = SavedItinerary(
            id=self._local_id(),
            title=f"{itinerary.type.capitalize()} - {itinerary.flight.departure.city} to {itinerary.flight.arrival.city}",
            itinerary_type=itinerary.type,
            details=itinerary,
            total_cost=itinerary.total_cost,
            status="saved",
            customer_id=customer_id,
            conversation_id=conversation_id,
            created_at=stamp,
            updated_at=stamp,
        )
        return await self._create(saved)

    async def update_status(self, itinerary_id: str, status: str) -> Optional[SavedItinerary]:
        changes = {"status": status, "updated_at": now_iso()}
        return await self._patch(itinerary_id, changes, dict(changes))

    async def update_customer(self, itinerary_id: str, customer_id: Optional[str]) -> Optional[SavedItinerary]:
        changes = {"customer_id": customer_id, "updated_at": now_iso()}
        return await self._patch(itinerary_id, changes, dict(changes))

    async def delete(self, itinerary_id: str) -> bool:
        return await self._remove(itinerary_id)


class ChecklistStore(CachedCollection[BookingChecklist]):
    cache_key = CHECKLISTS_KEY
    model = BookingChecklist
    agent_scoped = False
    id_prefix = "local-list"

    async def create(
        self,
        title: str,
        itinerary_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        is_international: bool = True,
        transport_mode: str = "plane",
    ) -> str:
        stamp = now_iso()
        checklist = BookingChecklist(
            id=self._local_id(),
            title=title,
            itinerary_id=itinerary_id,
            customer_id=customer_id,
            items=build_checklist_items(is_international, transport_mode),
            status="pending",
            created_at=stamp,
            updated_at=stamp,
        )
        return await self._create(checklist)

    async def update_item(self, checklist_id: str, item_id: str, completed: bool) -> Optional[BookingChecklist]:
        checklist = self.get(checklist_id)
        if checklist is None or not any(item.id == item_id for item in checklist.items):
            return None
        items = [
            item.model_copy(update={"completed": completed}) if item.id == item_id else item
            for item in checklist.items
        ]
        status = checklist_status(items)
        remote_values = {
            "items": [item.model_dump(mode="json") for item in items],
            "status": status,
        }
        return await self._patch(checklist_id, {"items": items, "status": status, "updated_at": now_iso()}, remote_values)

    async def delete(self, checklist_id: str) -> bool:
        return await self._remove(checklist_id)


class Stores:
    """The four collections the service persists."""

    def __init__(
        self,
        cache: LocalCache,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        agent_id: Optional[str] = None,
        timeout: float = 30.0,
    ):
        def remote(table: str) -> Optional[RemoteTable]:
            if not (base_url and api_key and agent_id):
                return None
            return RemoteTable(base_url, api_key, table, access_token=access_token, timeout=timeout)

        self.conversations = ConversationStore(cache, remote("conversations"), agent_id)
        self.customers = CustomerStore(cache, remote("customers"), agent_id)
        self.itineraries = ItineraryStore(cache, remote("itineraries"), agent_id)
        self.checklists = ChecklistStore(cache, remote("booking_checklists"), agent_id)

    async def load_all(self) -> None:
        for collection in (self.conversations, self.customers, self.itineraries, self.checklists):
            await collection.load()
