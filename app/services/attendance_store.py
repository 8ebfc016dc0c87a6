from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from app.core.config import Settings


class AttendanceStore(ABC):
    @abstractmethod
    def find_connected_integrations(
        self,
        *,
        integration_type: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def get_connected_integration(
        self,
        *,
        account_id: str,
        integration_type: str,
    ) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def create_session_if_absent(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
        title: str,
        start_time: datetime,
    ) -> tuple[dict[str, Any], bool]:
        raise NotImplementedError

    @abstractmethod
    def get_session(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
    ) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def close_session(self, *, session_id: str, end_time: datetime) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def list_clients(self, account_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def get_client(self, client_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def open_attendance(
        self,
        *,
        account_id: str,
        live_session_id: str,
        client_id: str,
        join_time: datetime,
        join_delay_sec: int,
    ) -> tuple[dict[str, Any], bool]:
        raise NotImplementedError

    @abstractmethod
    def get_open_attendance(self, *, live_session_id: str, client_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def close_attendance(
        self,
        *,
        attendance_id: str,
        leave_time: datetime,
        duration_sec: int,
        duration_clamped: bool,
    ) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def list_attendance(self, live_session_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def list_events_in_window(
        self,
        *,
        account_id: str,
        event_type: str,
        window_start: datetime,
        window_end: datetime,
        product_ids: list[str],
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def upsert_delivery(
        self,
        *,
        account_id: str,
        client_id: str,
        event_id: str,
        status: str,
        delivered_at: datetime,
        delivery_method: str,
        insert_notes: str,
        update_notes: str,
    ) -> tuple[dict[str, Any], bool]:
        raise NotImplementedError

    @abstractmethod
    def list_deliveries(self, *, client_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def enqueue_task(
        self,
        *,
        account_id: str,
        task_type: str,
        dedupe_key: str,
        payload: Mapping[str, Any],
    ) -> tuple[dict[str, Any], bool]:
        raise NotImplementedError

    @abstractmethod
    def list_tasks(self, *, task_type: str | None = None) -> list[dict[str, Any]]:
        raise NotImplementedError


class InMemoryAttendanceStore(AttendanceStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 1

        self._integrations_by_id: dict[str, dict[str, Any]] = {}
        self._sessions_by_id: dict[str, dict[str, Any]] = {}
        self._session_id_by_key: dict[tuple[str, str, str], str] = {}
        self._clients_by_id: dict[str, dict[str, Any]] = {}
        self._attendance_by_id: dict[str, dict[str, Any]] = {}
        self._open_attendance_id_by_key: dict[tuple[str, str], str] = {}
        self._events_by_id: dict[str, dict[str, Any]] = {}
        self._deliveries_by_id: dict[str, dict[str, Any]] = {}
        self._delivery_id_by_key: dict[tuple[str, str], str] = {}
        self._tasks_by_id: dict[str, dict[str, Any]] = {}
        self._task_id_by_dedupe_key: dict[str, str] = {}

    def add_integration(
        self,
        *,
        account_id: str,
        integration_type: str,
        status: str = "connected",
        config: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            integration = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "type": integration_type,
                "status": status,
                "config": dict(config) if config else {},
            }
            self._integrations_by_id[integration["_id"]] = integration
            return dict(integration)

    def add_client(
        self,
        *,
        account_id: str,
        full_name: str,
        emails: list[str] | None = None,
        product_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            client = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "full_name": full_name,
                "emails": list(emails or []),
                "product_ids": list(product_ids or []),
            }
            self._clients_by_id[client["_id"]] = client
            return dict(client)

    def add_scheduled_event(
        self,
        *,
        account_id: str,
        scheduled_at: datetime,
        eligible_product_ids: list[str],
        event_type: str = "live",
        title: str = "",
    ) -> dict[str, Any]:
        with self._lock:
            event = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "event_type": event_type,
                "title": title,
                "scheduled_at": scheduled_at,
                "eligible_product_ids": list(eligible_product_ids),
            }
            self._events_by_id[event["_id"]] = event
            return dict(event)

    def find_connected_integrations(
        self,
        *,
        integration_type: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        matches = [
            dict(integration)
            for integration in self._integrations_by_id.values()
            if integration.get("type") == integration_type and integration.get("status") == "connected"
        ]
        return matches[:limit]

    def get_connected_integration(
        self,
        *,
        account_id: str,
        integration_type: str,
    ) -> dict[str, Any] | None:
        for integration in self._integrations_by_id.values():
            if integration.get("account_id") != account_id:
                continue
            if integration.get("type") != integration_type:
                continue
            if integration.get("status") != "connected":
                continue
            return dict(integration)
        return None

    def create_session_if_absent(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
        title: str,
        start_time: datetime,
    ) -> tuple[dict[str, Any], bool]:
        key = (account_id, platform, external_meeting_id)
        with self._lock:
            existing_session_id = self._session_id_by_key.get(key)
            if existing_session_id:
                return dict(self._sessions_by_id[existing_session_id]), False

            now = datetime.now(UTC)
            session = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "platform": platform,
                "external_meeting_id": external_meeting_id,
                "title": title,
                "start_time": start_time,
                "end_time": None,
                "created_at": now,
                "updated_at": now,
            }
            self._sessions_by_id[session["_id"]] = session
            self._session_id_by_key[key] = session["_id"]
            return dict(session), True

    def get_session(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
    ) -> dict[str, Any] | None:
        session_id = self._session_id_by_key.get((account_id, platform, external_meeting_id))
        if not session_id:
            return None
        return dict(self._sessions_by_id[session_id])

    def close_session(self, *, session_id: str, end_time: datetime) -> dict[str, Any] | None:
        with self._lock:
            session = self._sessions_by_id.get(session_id)
            if not session or session.get("end_time") is not None:
                return None
            session["end_time"] = end_time
            session["updated_at"] = datetime.now(UTC)
            return dict(session)

    def list_clients(self, account_id: str) -> list[dict[str, Any]]:
        return [
            dict(client)
            for client in self._clients_by_id.values()
            if client.get("account_id") == account_id
        ]

    def get_client(self, client_id: str) -> dict[str, Any] | None:
        client = self._clients_by_id.get(client_id)
        if not client:
            return None
        return dict(client)

    def open_attendance(
        self,
        *,
        account_id: str,
        live_session_id: str,
        client_id: str,
        join_time: datetime,
        join_delay_sec: int,
    ) -> tuple[dict[str, Any], bool]:
        key = (live_session_id, client_id)
        with self._lock:
            open_attendance_id = self._open_attendance_id_by_key.get(key)
            if open_attendance_id:
                return dict(self._attendance_by_id[open_attendance_id]), False

            now = datetime.now(UTC)
            attendance = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "live_session_id": live_session_id,
                "client_id": client_id,
                "join_time": join_time,
                "leave_time": None,
                "join_delay_sec": join_delay_sec,
                "duration_sec": None,
                "duration_clamped": False,
                "is_open": True,
                "created_at": now,
                "updated_at": now,
            }
            self._attendance_by_id[attendance["_id"]] = attendance
            self._open_attendance_id_by_key[key] = attendance["_id"]
            return dict(attendance), True

    def get_open_attendance(self, *, live_session_id: str, client_id: str) -> dict[str, Any] | None:
        attendance_id = self._open_attendance_id_by_key.get((live_session_id, client_id))
        if not attendance_id:
            return None
        return dict(self._attendance_by_id[attendance_id])

    def close_attendance(
        self,
        *,
        attendance_id: str,
        leave_time: datetime,
        duration_sec: int,
        duration_clamped: bool,
    ) -> dict[str, Any] | None:
        with self._lock:
            attendance = self._attendance_by_id.get(attendance_id)
            if not attendance or not attendance.get("is_open"):
                return None
            attendance["leave_time"] = leave_time
            attendance["duration_sec"] = duration_sec
            attendance["duration_clamped"] = duration_clamped
            attendance["is_open"] = False
            attendance["updated_at"] = datetime.now(UTC)
            key = (attendance["live_session_id"], attendance["client_id"])
            if self._open_attendance_id_by_key.get(key) == attendance_id:
                del self._open_attendance_id_by_key[key]
            return dict(attendance)

    def list_attendance(self, live_session_id: str) -> list[dict[str, Any]]:
        records = [
            dict(attendance)
            for attendance in self._attendance_by_id.values()
            if attendance.get("live_session_id") == live_session_id
        ]
        records.sort(key=lambda attendance: attendance["join_time"])
        return records

    def list_events_in_window(
        self,
        *,
        account_id: str,
        event_type: str,
        window_start: datetime,
        window_end: datetime,
        product_ids: list[str],
    ) -> list[dict[str, Any]]:
        wanted_product_ids = set(product_ids)
        events: list[dict[str, Any]] = []
        for event in self._events_by_id.values():
            if event.get("account_id") != account_id:
                continue
            if event.get("event_type") != event_type:
                continue
            if not window_start <= event["scheduled_at"] <= window_end:
                continue
            if not wanted_product_ids.intersection(event.get("eligible_product_ids", [])):
                continue
            events.append(dict(event))
        events.sort(key=lambda event: event["scheduled_at"])
        return events

    def upsert_delivery(
        self,
        *,
        account_id: str,
        client_id: str,
        event_id: str,
        status: str,
        delivered_at: datetime,
        delivery_method: str,
        insert_notes: str,
        update_notes: str,
    ) -> tuple[dict[str, Any], bool]:
        key = (client_id, event_id)
        with self._lock:
            now = datetime.now(UTC)
            existing_delivery_id = self._delivery_id_by_key.get(key)
            if existing_delivery_id:
                existing = self._deliveries_by_id[existing_delivery_id]
                existing["status"] = status
                existing["delivered_at"] = delivered_at
                existing["delivery_method"] = delivery_method
                existing["notes"] = update_notes
                existing["updated_at"] = now
                return dict(existing), False

            delivery = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "client_id": client_id,
                "event_id": event_id,
                "status": status,
                "delivered_at": delivered_at,
                "delivery_method": delivery_method,
                "notes": insert_notes,
                "created_at": now,
                "updated_at": now,
            }
            self._deliveries_by_id[delivery["_id"]] = delivery
            self._delivery_id_by_key[key] = delivery["_id"]
            return dict(delivery), True

    def list_deliveries(self, *, client_id: str) -> list[dict[str, Any]]:
        return [
            dict(delivery)
            for delivery in self._deliveries_by_id.values()
            if delivery.get("client_id") == client_id
        ]

    def enqueue_task(
        self,
        *,
        account_id: str,
        task_type: str,
        dedupe_key: str,
        payload: Mapping[str, Any],
    ) -> tuple[dict[str, Any], bool]:
        with self._lock:
            existing_task_id = self._task_id_by_dedupe_key.get(dedupe_key)
            if existing_task_id:
                return dict(self._tasks_by_id[existing_task_id]), False

            task = {
                "_id": self._allocate_id(),
                "account_id": account_id,
                "task_type": task_type,
                "dedupe_key": dedupe_key,
                "payload": dict(payload),
                "status": "pending",
                "created_at": datetime.now(UTC),
            }
            self._tasks_by_id[task["_id"]] = task
            self._task_id_by_dedupe_key[dedupe_key] = task["_id"]
            return dict(task), True

    def list_tasks(self, *, task_type: str | None = None) -> list[dict[str, Any]]:
        return [
            dict(task)
            for task in self._tasks_by_id.values()
            if task_type is None or task.get("task_type") == task_type
        ]

    def _allocate_id(self) -> str:
        record_id = f"memory-{self._next_id}"
        self._next_id += 1
        return record_id


class MongoAttendanceStore(AttendanceStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        live_sessions_collection_name: str,
        attendance_collection_name: str,
        clients_collection_name: str,
        events_collection_name: str,
        deliveries_collection_name: str,
        integrations_collection_name: str,
        outbox_collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import DESCENDING, MongoClient

        self._desc = DESCENDING
        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        database = self._client[db_name]
        self._sessions = database[live_sessions_collection_name]
        self._attendance = database[attendance_collection_name]
        self._clients = database[clients_collection_name]
        self._events = database[events_collection_name]
        self._deliveries = database[deliveries_collection_name]
        self._integrations = database[integrations_collection_name]
        self._outbox = database[outbox_collection_name]

        self._sessions.create_index(
            [("account_id", 1), ("platform", 1), ("external_meeting_id", 1)],
            unique=True,
        )
        self._attendance.create_index(
            [("live_session_id", 1), ("client_id", 1)],
            unique=True,
            partialFilterExpression={"is_open": True},
        )
        self._attendance.create_index([("live_session_id", 1), ("join_time", self._desc)])
        self._deliveries.create_index([("client_id", 1), ("event_id", 1)], unique=True)
        self._events.create_index([("account_id", 1), ("event_type", 1), ("scheduled_at", 1)])
        self._clients.create_index("account_id")
        self._integrations.create_index([("type", 1), ("status", 1)])
        self._outbox.create_index("dedupe_key", unique=True)

    def find_connected_integrations(
        self,
        *,
        integration_type: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        cursor = self._integrations.find({"type": integration_type, "status": "connected"}).limit(limit)
        return [_serialize_record(record) for record in cursor]

    def get_connected_integration(
        self,
        *,
        account_id: str,
        integration_type: str,
    ) -> dict[str, Any] | None:
        record = self._integrations.find_one(
            {"account_id": account_id, "type": integration_type, "status": "connected"},
        )
        return _serialize_record(record)

    def create_session_if_absent(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
        title: str,
        start_time: datetime,
    ) -> tuple[dict[str, Any], bool]:
        from pymongo.errors import DuplicateKeyError

        now = datetime.now(UTC)
        payload = {
            "account_id": account_id,
            "platform": platform,
            "external_meeting_id": external_meeting_id,
            "title": title,
            "start_time": start_time,
            "end_time": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._sessions.insert_one(payload)
        except DuplicateKeyError:
            existing = self.get_session(
                account_id=account_id,
                platform=platform,
                external_meeting_id=external_meeting_id,
            )
            if not existing:
                raise
            return existing, False
        created = self._sessions.find_one({"_id": insert_result.inserted_id})
        return _serialize_record(created) or {}, True

    def get_session(
        self,
        *,
        account_id: str,
        platform: str,
        external_meeting_id: str,
    ) -> dict[str, Any] | None:
        record = self._sessions.find_one(
            {
                "account_id": account_id,
                "platform": platform,
                "external_meeting_id": external_meeting_id,
            },
        )
        return _serialize_record(record)

    def close_session(self, *, session_id: str, end_time: datetime) -> dict[str, Any] | None:
        from pymongo import ReturnDocument

        record = self._sessions.find_one_and_update(
            {"_id": _to_record_key(session_id), "end_time": None},
            {"$set": {"end_time": end_time, "updated_at": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return _serialize_record(record)

    def list_clients(self, account_id: str) -> list[dict[str, Any]]:
        cursor = self._clients.find({"account_id": account_id}).sort("_id", 1)
        return [_serialize_record(record) for record in cursor]

    def get_client(self, client_id: str) -> dict[str, Any] | None:
        record = self._clients.find_one({"_id": _to_record_key(client_id)})
        return _serialize_record(record)

    def open_attendance(
        self,
        *,
        account_id: str,
        live_session_id: str,
        client_id: str,
        join_time: datetime,
        join_delay_sec: int,
    ) -> tuple[dict[str, Any], bool]:
        from pymongo.errors import DuplicateKeyError

        now = datetime.now(UTC)
        payload = {
            "account_id": account_id,
            "live_session_id": live_session_id,
            "client_id": client_id,
            "join_time": join_time,
            "leave_time": None,
            "join_delay_sec": join_delay_sec,
            "duration_sec": None,
            "duration_clamped": False,
            "is_open": True,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._attendance.insert_one(payload)
        except DuplicateKeyError:
            existing = self.get_open_attendance(live_session_id=live_session_id, client_id=client_id)
            if not existing:
                raise
            return existing, False
        created = self._attendance.find_one({"_id": insert_result.inserted_id})
        return _serialize_record(created) or {}, True

    def get_open_attendance(self, *, live_session_id: str, client_id: str) -> dict[str, Any] | None:
        record = self._attendance.find_one(
            {"live_session_id": live_session_id, "client_id": client_id, "is_open": True},
            sort=[("join_time", self._desc)],
        )
        return _serialize_record(record)

    def close_attendance(
        self,
        *,
        attendance_id: str,
        leave_time: datetime,
        duration_sec: int,
        duration_clamped: bool,
    ) -> dict[str, Any] | None:
        from pymongo import ReturnDocument

        record = self._attendance.find_one_and_update(
            {"_id": _to_record_key(attendance_id), "is_open": True},
            {
                "$set": {
                    "leave_time": leave_time,
                    "duration_sec": duration_sec,
                    "duration_clamped": duration_clamped,
                    "is_open": False,
                    "updated_at": datetime.now(UTC),
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        return _serialize_record(record)

    def list_attendance(self, live_session_id: str) -> list[dict[str, Any]]:
        cursor = self._attendance.find({"live_session_id": live_session_id}).sort("join_time", 1)
        return [_serialize_record(record) for record in cursor]

    def list_events_in_window(
        self,
        *,
        account_id: str,
        event_type: str,
        window_start: datetime,
        window_end: datetime,
        product_ids: list[str],
    ) -> list[dict[str, Any]]:
        cursor = self._events.find(
            {
                "account_id": account_id,
                "event_type": event_type,
                "scheduled_at": {"$gte": window_start, "$lte": window_end},
                "eligible_product_ids": {"$in": list(product_ids)},
            },
        ).sort("scheduled_at", 1)
        return [_serialize_record(record) for record in cursor]

    def upsert_delivery(
        self,
        *,
        account_id: str,
        client_id: str,
        event_id: str,
        status: str,
        delivered_at: datetime,
        delivery_method: str,
        insert_notes: str,
        update_notes: str,
    ) -> tuple[dict[str, Any], bool]:
        from pymongo.errors import DuplicateKeyError

        query = {"client_id": client_id, "event_id": event_id}
        now = datetime.now(UTC)
        payload = {
            **query,
            "account_id": account_id,
            "status": status,
            "delivered_at": delivered_at,
            "delivery_method": delivery_method,
            "notes": insert_notes,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._deliveries.insert_one(payload)
        except DuplicateKeyError:
            self._deliveries.update_one(
                query,
                {
                    "$set": {
                        "status": status,
                        "delivered_at": delivered_at,
                        "delivery_method": delivery_method,
                        "notes": update_notes,
                        "updated_at": now,
                    },
                },
            )
            return _serialize_record(self._deliveries.find_one(query)) or {}, False
        created = self._deliveries.find_one({"_id": insert_result.inserted_id})
        return _serialize_record(created) or {}, True

    def list_deliveries(self, *, client_id: str) -> list[dict[str, Any]]:
        cursor = self._deliveries.find({"client_id": client_id})
        return [_serialize_record(record) for record in cursor]

    def enqueue_task(
        self,
        *,
        account_id: str,
        task_type: str,
        dedupe_key: str,
        payload: Mapping[str, Any],
    ) -> tuple[dict[str, Any], bool]:
        from pymongo.errors import DuplicateKeyError

        document = {
            "account_id": account_id,
            "task_type": task_type,
            "dedupe_key": dedupe_key,
            "payload": dict(payload),
            "status": "pending",
            "created_at": datetime.now(UTC),
        }
        try:
            insert_result = self._outbox.insert_one(document)
        except DuplicateKeyError:
            existing = self._outbox.find_one({"dedupe_key": dedupe_key})
            if not existing:
                raise
            return _serialize_record(existing) or {}, False
        created = self._outbox.find_one({"_id": insert_result.inserted_id})
        return _serialize_record(created) or {}, True

    def list_tasks(self, *, task_type: str | None = None) -> list[dict[str, Any]]:
        query: dict[str, Any] = {}
        if task_type:
            query["task_type"] = task_type
        cursor = self._outbox.find(query).sort("created_at", 1)
        return [_serialize_record(record) for record in cursor]


def _to_record_key(record_id: str) -> Any:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        # Client and event records written by other services may use string ids.
        return record_id


def _serialize_record(record: Any) -> dict[str, Any] | None:
    if not record:
        return None
    payload = dict(record)
    payload["_id"] = str(record.get("_id", ""))
    return payload


def create_attendance_store(settings: Settings) -> AttendanceStore:
    return _create_attendance_store_cached(
        store_name=settings.attendance_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_live_sessions_collection=settings.mongodb_live_sessions_collection,
        mongodb_attendance_collection=settings.mongodb_attendance_collection,
        mongodb_clients_collection=settings.mongodb_clients_collection,
        mongodb_events_collection=settings.mongodb_events_collection,
        mongodb_deliveries_collection=settings.mongodb_deliveries_collection,
        mongodb_integrations_collection=settings.mongodb_integrations_collection,
        mongodb_outbox_collection=settings.mongodb_outbox_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_attendance_store_cached(
    *,
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_live_sessions_collection: str,
    mongodb_attendance_collection: str,
    mongodb_clients_collection: str,
    mongodb_events_collection: str,
    mongodb_deliveries_collection: str,
    mongodb_integrations_collection: str,
    mongodb_outbox_collection: str,
    mongodb_connect_timeout_ms: int,
) -> AttendanceStore:
    if store_name == "memory":
        return InMemoryAttendanceStore()

    if store_name == "mongodb":
        return MongoAttendanceStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            live_sessions_collection_name=mongodb_live_sessions_collection,
            attendance_collection_name=mongodb_attendance_collection,
            clients_collection_name=mongodb_clients_collection,
            events_collection_name=mongodb_events_collection,
            deliveries_collection_name=mongodb_deliveries_collection,
            integrations_collection_name=mongodb_integrations_collection,
            outbox_collection_name=mongodb_outbox_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    # Unknown store names fall back to memory.
    return InMemoryAttendanceStore()


def clear_attendance_store_cache() -> None:
    _create_attendance_store_cached.cache_clear()
