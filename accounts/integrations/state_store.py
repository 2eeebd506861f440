import logging
import threading
import uuid

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from accounts.domain.entities import Account, MalformedAccount, StateEntry
from accounts.models import StateRecord

logger = logging.getLogger(__name__)


class StateConflict(Exception):
    """Raised when the stored etag no longer matches the one that was read."""


class StoreTransportError(Exception):
    """Raised when the state store cannot be reached or answers with garbage."""


def decode_account(key, document):
    try:
        return Account.from_document(document, fallback_id=key)
    except MalformedAccount as exc:
        raise StoreTransportError(f"stored value for key={key} is malformed") from exc


def next_etag(etag):
    if etag is None:
        return "1"
    try:
        return str(int(etag) + 1)
    except ValueError:
        return uuid.uuid4().hex


def require_value(entry):
    if not entry.exists:
        raise ValueError(f"cannot save key={entry.key} without a value")
    return entry.value


class BaseStateClient:
    def fetch(self, store, key):
        raise NotImplementedError

    def save(self, store, entry):
        raise NotImplementedError


class InMemoryStateClient(BaseStateClient):
    """Process-local store; versions are plain counters."""

    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def fetch(self, store, key):
        with self._lock:
            record = self._records.get((store, key))
        if record is None:
            return StateEntry(store=store, key=key)

        document, etag = record
        return StateEntry(
            store=store,
            key=key,
            value=decode_account(key, document),
            etag=etag,
        )

    def save(self, store, entry):
        document = require_value(entry).to_document()
        with self._lock:
            record = self._records.get((store, entry.key))
            current_etag = record[1] if record is not None else None
            if current_etag != entry.etag:
                raise StateConflict(
                    f"key={entry.key} etag={entry.etag} current={current_etag}"
                )
            self._records[(store, entry.key)] = (document, next_etag(current_etag))


class DatabaseStateClient(BaseStateClient):
    """Keeps state entries in the ``StateRecord`` table.

    The conditional write is a single ``UPDATE ... WHERE etag = ?``; first
    writes rely on the ``(store_name, key)`` unique constraint so two racing
    creators cannot both succeed.
    """

    def fetch(self, store, key):
        try:
            record = (
                StateRecord.objects.filter(store_name=store, key=key)
                .only("value", "etag")
                .first()
            )
        except DatabaseError as exc:
            logger.warning(
                "event=state_fetch_failed backend=database store=%s key=%s error=%s",
                store,
                key,
                exc.__class__.__name__,
            )
            raise StoreTransportError(f"failed to fetch key={key}") from exc

        if record is None:
            return StateEntry(store=store, key=key)

        return StateEntry(
            store=store,
            key=key,
            value=decode_account(key, record.value),
            etag=record.etag,
        )

    def save(self, store, entry):
        document = require_value(entry).to_document()
        try:
            if entry.etag is None:
                self._insert(store, entry.key, document)
            else:
                self._update(store, entry, document)
        except DatabaseError as exc:
            logger.warning(
                "event=state_save_failed backend=database store=%s key=%s error=%s",
                store,
                entry.key,
                exc.__class__.__name__,
            )
            raise StoreTransportError(f"failed to save key={entry.key}") from exc

    @staticmethod
    def _insert(store, key, document):
        try:
            with transaction.atomic():
                StateRecord.objects.create(
                    store_name=store,
                    key=key,
                    value=document,
                    etag=next_etag(None),
                )
        except IntegrityError as exc:
            raise StateConflict(f"key={key} was created concurrently") from exc

    @staticmethod
    def _update(store, entry, document):
        updated = StateRecord.objects.filter(
            store_name=store,
            key=entry.key,
            etag=entry.etag,
        ).update(
            value=document,
            etag=next_etag(entry.etag),
            updated_at=timezone.now(),
        )
        if updated == 0:
            raise StateConflict(f"key={entry.key} etag={entry.etag} is stale")


def build_state_client(backend=None):
    backend = backend or settings.STATE_STORE_BACKEND

    if backend == "database":
        return DatabaseStateClient()
    if backend == "memory":
        return InMemoryStateClient()
    if backend == "redis":
        from accounts.integrations.redis_store import build_redis_state_client

        return build_redis_state_client()
    if backend == "dapr":
        from accounts.integrations.dapr_client import DaprStateClient

        return DaprStateClient()

    raise ImproperlyConfigured(f"unknown STATE_STORE_BACKEND={backend!r}")
