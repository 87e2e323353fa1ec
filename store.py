"""Redis store: records, change events, the email queue and locks."""

import json
import time
from typing import Dict, List, Optional, Type

import redis
from pydantic import BaseModel
from redis.asyncio import Redis

from config import (
    CHANGES_CHANNEL_PREFIX,
    EMAIL_QUEUE_KEY,
    KEY_PREFIX,
    NOTIFICATIONS_KEY,
    PROCESSING_LOCK_PREFIX,
    PROCESSING_LOCK_TTL,
    WRITE_LOCK_KEY,
    WRITE_LOCK_TTL,
)
from models import Agent, AgentNotification, Candidate, CandidateMatch, DoctorEmail, EmailJob, Job

TABLES: Dict[str, Type[BaseModel]] = {
    "agents": Agent,
    "candidates": Candidate,
    "jobs": Job,
    "matches": CandidateMatch,
    "email_jobs": EmailJob,
    "doctor_emails": DoctorEmail,
}

MAX_NOTIFICATIONS = 500

_sync_client: Optional[redis.Redis] = None
_async_client: Optional[Redis] = None


def get_sync_redis() -> redis.Redis:
    global _sync_client
    if _sync_client is None:
        from config import REDIS_URL
        _sync_client = redis.from_url(REDIS_URL, decode_responses=True)
    return _sync_client


def get_async_redis() -> Redis:
    global _async_client
    if _async_client is None:
        from config import REDIS_URL
        _async_client = Redis.from_url(REDIS_URL, decode_responses=True)
    return _async_client


def record_key(table: str, record_id: str) -> str:
    return f"{KEY_PREFIX}{table}:{record_id}"


def ids_key(table: str) -> str:
    # sorted set: score = first-insert time, so listings keep insertion order
    return f"{KEY_PREFIX}{table}:ids"


def record_id(table: str, record: BaseModel) -> str:
    if table == "matches":
        return f"{record.job_id}:{record.candidate_id}"
    return record.id


def _model(table: str) -> Type[BaseModel]:
    if table not in TABLES:
        raise KeyError(f"Unknown table: {table}")
    return TABLES[table]


def _change_event(event: str, rid: str) -> str:
    return json.dumps({"event": event, "id": rid, "at": time.time()})


# --- Sync API (used by the worker) ---

def save_record_sync(table: str, record: BaseModel) -> None:
    _model(table)
    r = get_sync_redis()
    rid = record_id(table, record)
    r.set(record_key(table, rid), record.model_dump_json())
    r.zadd(ids_key(table), {rid: time.time()}, nx=True)
    r.publish(f"{CHANGES_CHANNEL_PREFIX}{table}", _change_event("upsert", rid))


def get_record_sync(table: str, rid: str) -> Optional[BaseModel]:
    raw = get_sync_redis().get(record_key(table, rid))
    if raw is None:
        return None
    return _model(table).model_validate_json(raw)


def list_records_sync(table: str) -> List[BaseModel]:
    r = get_sync_redis()
    ids = r.zrange(ids_key(table), 0, -1)
    if not ids:
        return []
    model = _model(table)
    raws = r.mget([record_key(table, rid) for rid in ids])
    return [model.model_validate_json(raw) for raw in raws if raw is not None]


def dequeue_email_sync(timeout: int = 5) -> Optional[str]:
    """Blocking pop from the email queue. Returns None on timeout."""
    result = get_sync_redis().brpop(EMAIL_QUEUE_KEY, timeout=timeout)
    if result is None:
        return None
    _, email_id = result
    return email_id


def acquire_processing_lock(email_id: str) -> bool:
    """Acquire per-email processing lock. Returns True if acquired."""
    r = get_sync_redis()
    return bool(r.set(f"{PROCESSING_LOCK_PREFIX}{email_id}", "1", nx=True, ex=PROCESSING_LOCK_TTL))


def release_processing_lock(email_id: str) -> None:
    get_sync_redis().delete(f"{PROCESSING_LOCK_PREFIX}{email_id}")


def push_notification_sync(notification: AgentNotification) -> None:
    r = get_sync_redis()
    r.lpush(NOTIFICATIONS_KEY, notification.model_dump_json())
    r.ltrim(NOTIFICATIONS_KEY, 0, MAX_NOTIFICATIONS - 1)


# --- Async API (for FastAPI) ---

async def acquire_write_lock_async() -> bool:
    r = get_async_redis()
    return bool(await r.set(WRITE_LOCK_KEY, "1", nx=True, ex=WRITE_LOCK_TTL))


async def release_write_lock_async() -> None:
    await get_async_redis().delete(WRITE_LOCK_KEY)


async def acquire_processing_lock_async(email_id: str) -> bool:
    r = get_async_redis()
    return bool(await r.set(f"{PROCESSING_LOCK_PREFIX}{email_id}", "1", nx=True, ex=PROCESSING_LOCK_TTL))


async def release_processing_lock_async(email_id: str) -> None:
    await get_async_redis().delete(f"{PROCESSING_LOCK_PREFIX}{email_id}")


async def save_record_async(table: str, record: BaseModel) -> None:
    _model(table)
    r = get_async_redis()
    rid = record_id(table, record)
    await r.set(record_key(table, rid), record.model_dump_json())
    await r.zadd(ids_key(table), {rid: time.time()}, nx=True)
    await r.publish(f"{CHANGES_CHANNEL_PREFIX}{table}", _change_event("upsert", rid))


async def get_record_async(table: str, rid: str) -> Optional[BaseModel]:
    raw = await get_async_redis().get(record_key(table, rid))
    if raw is None:
        return None
    return _model(table).model_validate_json(raw)


async def list_records_async(table: str) -> List[BaseModel]:
    r = get_async_redis()
    ids = await r.zrange(ids_key(table), 0, -1)
    if not ids:
        return []
    model = _model(table)
    raws = await r.mget([record_key(table, rid) for rid in ids])
    return [model.model_validate_json(raw) for raw in raws if raw is not None]


async def enqueue_email_async(email_id: str) -> None:
    await get_async_redis().lpush(EMAIL_QUEUE_KEY, email_id)


async def push_notification_async(notification: AgentNotification) -> None:
    r = get_async_redis()
    await r.lpush(NOTIFICATIONS_KEY, notification.model_dump_json())
    await r.ltrim(NOTIFICATIONS_KEY, 0, MAX_NOTIFICATIONS - 1)


async def list_notifications_async(agent_id: Optional[str] = None) -> List[AgentNotification]:
    raws = await get_async_redis().lrange(NOTIFICATIONS_KEY, 0, -1)
    items = [AgentNotification.model_validate_json(raw) for raw in raws]
    if agent_id:
        items = [n for n in items if n.agent_id == agent_id]
    return items
