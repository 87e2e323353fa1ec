"""Shared fixtures: record builders and an in-memory stand-in for the Redis store."""

from typing import Any, Dict

import pytest

from models import Agent, Candidate, Job


def build_agent(**kwargs: Any) -> Agent:
    defaults: Dict[str, Any] = {
        "id": "agent-1",
        "name": "Sarah Mitchell",
        "email": "sarah@agency.com",
        "specializations": ["Cardiology"],
        "grades": ["Consultant"],
        "locations": ["London"],
        "capacity": {"max_active_jobs": 10, "max_candidates": 50, "hours_per_week": 40},
        "metrics": {"avg_response_time": 0},
        "preferences": {"urgency_weighting": 5},
    }
    defaults.update(kwargs)
    return Agent(**defaults)


def build_job(**kwargs: Any) -> Job:
    defaults: Dict[str, Any] = {
        "id": "job-1",
        "title": "Consultant Cardiologist",
        "client": "Royal London Hospital",
        "location": "London, UK",
        "specialization": "Cardiology",
        "urgency": "medium",
        "status": "open",
    }
    defaults.update(kwargs)
    return Job(**defaults)


def build_candidate(**kwargs: Any) -> Candidate:
    defaults: Dict[str, Any] = {
        "id": "cand-1",
        "name": "Dr. Sarah Johnson",
        "email": "sarah.johnson@email.com",
        "specialization": "Cardiology",
        "experience": 8,
        "status": "active",
    }
    defaults.update(kwargs)
    return Candidate(**defaults)


class MemoryStore:
    """Implements the store functions the API and worker use, backed by dicts."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.queue = []
        self.notifications = []
        self.locked = False
        self.processing = set()

    def _table(self, table):
        return self.tables.setdefault(table, {})

    def save(self, table, record):
        import store
        self._table(table)[store.record_id(table, record)] = record.model_copy(deep=True)

    def get(self, table, rid):
        record = self._table(table).get(rid)
        return record.model_copy(deep=True) if record is not None else None

    def list(self, table):
        return [r.model_copy(deep=True) for r in self._table(table).values()]

    def install(self, monkeypatch, module):
        async def save_record_async(table, record):
            self.save(table, record)

        async def get_record_async(table, rid):
            return self.get(table, rid)

        async def list_records_async(table):
            return self.list(table)

        async def acquire_write_lock_async():
            if self.locked:
                return False
            self.locked = True
            return True

        async def release_write_lock_async():
            self.locked = False

        async def acquire_processing_lock_async(email_id):
            if email_id in self.processing:
                return False
            self.processing.add(email_id)
            return True

        async def release_processing_lock_async(email_id):
            self.processing.discard(email_id)

        async def enqueue_email_async(email_id):
            self.queue.insert(0, email_id)

        async def push_notification_async(notification):
            self.notifications.insert(0, notification)

        async def list_notifications_async(agent_id=None):
            return [n for n in self.notifications if not agent_id or n.agent_id == agent_id]

        for name, fn in {
            "save_record_async": save_record_async,
            "get_record_async": get_record_async,
            "list_records_async": list_records_async,
            "acquire_write_lock_async": acquire_write_lock_async,
            "release_write_lock_async": release_write_lock_async,
            "acquire_processing_lock_async": acquire_processing_lock_async,
            "release_processing_lock_async": release_processing_lock_async,
            "enqueue_email_async": enqueue_email_async,
            "push_notification_async": push_notification_async,
            "list_notifications_async": list_notifications_async,
        }.items():
            monkeypatch.setattr(module, name, fn)


@pytest.fixture
def memory_store(monkeypatch):
    import store
    mem = MemoryStore()
    mem.install(monkeypatch, store)
    return mem
