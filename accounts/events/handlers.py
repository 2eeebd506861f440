import json
import logging

from django.conf import settings

from accounts.domain.constants import EventOutcome, TransactionType
from accounts.domain.entities import Transaction
from accounts.domain.exceptions import (
    AccountNotFound,
    ConcurrencyConflict,
    InsufficientFunds,
    InvalidInput,
    StoreUnavailable,
)
from accounts.domain.policies import validate_account_id, validate_amount

logger = logging.getLogger(__name__)

TOPICS = tuple(transaction_type.value for transaction_type in TransactionType)


def subscriptions(pubsub_name=None):
    pubsub_name = pubsub_name or settings.PUBSUB_NAME
    return [
        {"pubsubname": pubsub_name, "topic": topic, "route": f"/events/{topic}"}
        for topic in TOPICS
    ]


def unwrap_cloud_event(payload):
    if isinstance(payload, dict) and "specversion" in payload:
        payload = payload.get("data")
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise InvalidInput("event data is not valid JSON") from exc
    return payload


def decode_transaction(payload):
    data = unwrap_cloud_event(payload)
    if not isinstance(data, dict):
        raise InvalidInput("event data must be an object with id and amount")
    return Transaction(
        id=validate_account_id(data.get("id")),
        amount=validate_amount(data.get("amount")),
    )


def apply_transaction(topic, transaction, *, ledger):
    if topic == TransactionType.DEPOSIT:
        return ledger.deposit(transaction.id, transaction.amount)
    if topic == TransactionType.WITHDRAW:
        return ledger.withdraw(transaction.id, transaction.amount)
    raise InvalidInput(f"unsupported topic={topic}")


def handle_transaction_event(topic, payload, *, ledger):
    """Apply one delivered event and tell the transport what to do with it.

    Delivery is at-least-once: conflicts and store outages ask for
    redelivery, anything that cannot succeed on a retry is dropped.
    """
    if topic not in TOPICS:
        logger.warning("event=transaction_event_dropped topic=%s reason=unknown_topic", topic)
        return EventOutcome.DROP

    try:
        transaction = decode_transaction(payload)
        account = apply_transaction(topic, transaction, ledger=ledger)
    except InvalidInput as exc:
        logger.warning(
            "event=transaction_event_dropped topic=%s reason=invalid_input detail=%s",
            topic,
            exc,
        )
        return EventOutcome.DROP
    except (AccountNotFound, InsufficientFunds) as exc:
        logger.warning(
            "event=transaction_event_dropped topic=%s reason=%s detail=%s",
            topic,
            exc.__class__.__name__,
            exc,
        )
        return EventOutcome.DROP
    except (ConcurrencyConflict, StoreUnavailable) as exc:
        logger.warning(
            "event=transaction_event_retry topic=%s reason=%s detail=%s",
            topic,
            exc.__class__.__name__,
            exc,
        )
        return EventOutcome.RETRY

    logger.info(
        "event=transaction_event_applied topic=%s account_id=%s balance=%s",
        topic,
        account.id,
        account.balance,
    )
    return EventOutcome.SUCCESS
