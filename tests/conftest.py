"""
Shared fixtures: in-memory repositories and a recording processing trigger.

The fakes implement the same async methods as the SQLAlchemy
repositories, storing plain attribute objects in dictionaries.
"""
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from docai.schemas.document import DocumentStatus, FileMeta
from docai.schemas.subscription import SubscriptionStatus


def _now():
    return datetime.now(timezone.utc)


def make_record(**fields) -> SimpleNamespace:
    now = _now()
    fields.setdefault("id", uuid.uuid4())
    fields.setdefault("created_at", now)
    fields.setdefault("updated_at", now)
    return SimpleNamespace(**fields)


class _FakeRepo:
    def __init__(self):
        self.rows: Dict[Any, SimpleNamespace] = {}
        self.apply_calls: List[Dict[str, Any]] = []

    async def get_by_id(self, id):
        return self.rows.get(id)

    async def apply(self, instance, changes):
        self.apply_calls.append(dict(changes))
        for key, value in changes.items():
            setattr(instance, key, value)
        return instance

    async def delete(self, instance):
        self.rows.pop(instance.id, None)


class FakeDocumentRepository(_FakeRepo):
    async def get_owned(self, document_id, user_id):
        doc = self.rows.get(document_id)
        if doc is None or doc.user_id != user_id:
            return None
        return doc

    async def get_by_user(self, user_id, status=None, skip=0, limit=100):
        docs = [d for d in self.rows.values() if d.user_id == user_id]
        if status is not None:
            docs = [d for d in docs if d.status == status.value]
        docs.sort(key=lambda d: d.created_at, reverse=True)
        return docs[skip:skip + limit]

    async def count_by_user(self, user_id, status=None):
        return len(await self.get_by_user(user_id, status=status, limit=10 ** 6))

    async def create_queued(self, user_id: str, file_meta: FileMeta):
        doc = make_record(
            user_id=user_id,
            status=DocumentStatus.QUEUED.value,
            processed_output=None,
            error=None,
            processed_at=None,
            **file_meta.model_dump(),
        )
        self.rows[doc.id] = doc
        return doc

    def add(self, **fields) -> SimpleNamespace:
        fields.setdefault("file_name", "report.pdf")
        fields.setdefault("file_size", 1024)
        fields.setdefault("file_type", "application/pdf")
        fields.setdefault("file_path", "uploads/report.pdf")
        fields.setdefault("file_url", "https://files.example.com/report.pdf")
        fields.setdefault("status", DocumentStatus.QUEUED.value)
        fields.setdefault("processed_output", None)
        fields.setdefault("error", None)
        fields.setdefault("processed_at", None)
        doc = make_record(**fields)
        self.rows[doc.id] = doc
        return doc


class FakeSubscriptionRepository(_FakeRepo):
    def _latest(self, rows) -> Optional[SimpleNamespace]:
        rows = sorted(rows, key=lambda s: s.updated_at, reverse=True)
        return rows[0] if rows else None

    async def get_by_user(self, user_id):
        return self._latest([s for s in self.rows.values() if s.user_id == user_id])

    async def get_active_by_user(self, user_id):
        return self._latest([
            s for s in self.rows.values()
            if s.user_id == user_id and s.status == SubscriptionStatus.ACTIVE.value
        ])

    async def get_by_order_id(self, order_id):
        return self._latest([s for s in self.rows.values() if s.razorpay_order_id == order_id])

    async def get_by_provider_subscription_id(self, subscription_id):
        return self._latest([
            s for s in self.rows.values() if s.razorpay_subscription_id == subscription_id
        ])

    async def create(self, **fields):
        fields.setdefault("plan", "free")
        fields.setdefault("status", SubscriptionStatus.ACTIVE.value)
        fields.setdefault("razorpay_order_id", None)
        fields.setdefault("razorpay_subscription_id", None)
        fields.setdefault("start_date", None)
        fields.setdefault("end_date", None)
        sub = make_record(**fields)
        self.rows[sub.id] = sub
        return sub

    async def upsert_for_user(self, user_id, changes):
        existing = await self.get_by_user(user_id)
        if existing is not None:
            return await self.apply(existing, changes)
        return await self.create(user_id=user_id, **changes)


class FakeProfileRepository(_FakeRepo):
    async def get_by_clerk_id(self, clerk_user_id):
        for profile in self.rows.values():
            if profile.clerk_user_id == clerk_user_id:
                return profile
        return None

    async def create_profile(self, clerk_user_id, email="", full_name=None):
        existing = await self.get_by_clerk_id(clerk_user_id)
        if existing is not None:
            return existing
        profile = make_record(
            clerk_user_id=clerk_user_id,
            email=email or "",
            full_name=full_name,
            free_credits_used=0,
            plan="free",
            subscription_status="inactive",
        )
        self.rows[profile.id] = profile
        return profile

    async def update_by_clerk_id(self, clerk_user_id, changes):
        profile = await self.get_by_clerk_id(clerk_user_id)
        if profile is None:
            return None
        return await self.apply(profile, changes)

    async def delete_by_clerk_id(self, clerk_user_id):
        profile = await self.get_by_clerk_id(clerk_user_id)
        if profile is None:
            return False
        await self.delete(profile)
        return True


class RecordingTrigger:
    def __init__(self, fail: bool = False):
        self.triggered: List[Any] = []
        self.fail = fail

    async def trigger(self, document):
        self.triggered.append(document.id)
        if self.fail:
            raise RuntimeError("queue down")


@pytest.fixture
def document_repo():
    return FakeDocumentRepository()


@pytest.fixture
def subscription_repo():
    return FakeSubscriptionRepository()


@pytest.fixture
def profile_repo():
    return FakeProfileRepository()


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def failing_trigger():
    return RecordingTrigger(fail=True)
