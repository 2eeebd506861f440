import logging
import time
from decimal import DecimalException, Inexact, localcontext

from django.apps import apps
from django.conf import settings

from accounts.domain.entities import Account
from accounts.domain.exceptions import (
    AccountNotFound,
    ConcurrencyConflict,
    InsufficientFunds,
    InvalidInput,
    StoreUnavailable,
)
from accounts.domain.policies import validate_account_id, validate_amount
from accounts.integrations.retry import retry_on_exceptions
from accounts.integrations.state_store import StateConflict, StoreTransportError

logger = logging.getLogger(__name__)


class AccountLedger:
    """Applies balance changes with optimistic concurrency.

    Every attempt fetches the account with its etag, computes the new balance
    in memory and saves it conditioned on that etag. A conflicting save
    re-runs the whole attempt; a store failure ends the call at once.
    Nothing is cached between calls and no in-process lock is taken.
    """

    def __init__(
        self,
        state_client,
        *,
        store_name=None,
        max_attempts=None,
        retry_base_delay=None,
        retry_max_delay=None,
        allow_negative_balance=None,
        sleep=time.sleep,
    ):
        self.state_client = state_client
        self.store_name = store_name or settings.STATE_STORE_NAME
        self.max_attempts = (
            settings.LEDGER_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        self.retry_base_delay = (
            settings.LEDGER_RETRY_BASE_DELAY
            if retry_base_delay is None
            else retry_base_delay
        )
        self.retry_max_delay = (
            settings.LEDGER_RETRY_MAX_DELAY
            if retry_max_delay is None
            else retry_max_delay
        )
        self.allow_negative_balance = (
            settings.LEDGER_ALLOW_NEGATIVE_BALANCE
            if allow_negative_balance is None
            else allow_negative_balance
        )
        self.sleep = sleep

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def get(self, account_id):
        account_id = validate_account_id(account_id)
        entry = self._fetch(account_id)
        if not entry.exists:
            raise AccountNotFound(account_id)
        return entry.value

    def deposit(self, account_id, amount):
        return self.apply_delta(
            account_id, validate_amount(amount), create_if_missing=True
        )

    def withdraw(self, account_id, amount):
        return self.apply_delta(
            account_id, -validate_amount(amount), create_if_missing=False
        )

    def apply_delta(self, account_id, delta, *, create_if_missing=True):
        account_id = validate_account_id(account_id)
        delta = validate_amount(delta)

        def attempt_once():
            return self._apply_once(account_id, delta, create_if_missing)

        def on_retry(*, attempt, delay_seconds, exception):
            logger.warning(
                "event=ledger_conflict_retry account_id=%s attempt=%s max_attempts=%s delay_ms=%s",
                account_id,
                attempt,
                self.max_attempts,
                int(delay_seconds * 1000),
            )

        try:
            account = retry_on_exceptions(
                attempt_once,
                exceptions=(StateConflict,),
                max_attempts=self.max_attempts,
                base_delay=self.retry_base_delay,
                max_delay=self.retry_max_delay,
                on_retry=on_retry,
                sleep=self.sleep,
            )
        except StateConflict as exc:
            logger.warning(
                "event=ledger_conflict_exhausted account_id=%s attempts=%s",
                account_id,
                self.max_attempts,
            )
            raise ConcurrencyConflict(account_id, self.max_attempts) from exc

        logger.info(
            "event=ledger_delta_applied account_id=%s delta=%s balance=%s",
            account_id,
            delta,
            account.balance,
        )
        return account

    def _apply_once(self, account_id, delta, create_if_missing):
        entry = self._fetch(account_id)

        if entry.exists:
            account = entry.value
        elif create_if_missing:
            account = Account(id=account_id)
        else:
            raise AccountNotFound(account_id)

        new_balance = add_exact(account.balance, delta, account_id=account_id)
        if delta < 0 and new_balance < 0 and not self.allow_negative_balance:
            raise InsufficientFunds(account_id, account.balance, -delta)

        updated = account.with_balance(new_balance)
        try:
            self.state_client.save(self.store_name, entry.with_value(updated))
        except StoreTransportError as exc:
            logger.error(
                "event=ledger_store_unavailable operation=save account_id=%s",
                account_id,
            )
            raise StoreUnavailable(f"failed to save account={account_id}") from exc
        return updated

    def _fetch(self, account_id):
        try:
            return self.state_client.fetch(self.store_name, account_id)
        except StoreTransportError as exc:
            logger.error(
                "event=ledger_store_unavailable operation=fetch account_id=%s",
                account_id,
            )
            raise StoreUnavailable(f"failed to fetch account={account_id}") from exc


def add_exact(balance, delta, *, account_id):
    with localcontext() as ctx:
        ctx.traps[Inexact] = True
        try:
            return balance + delta
        except DecimalException as exc:
            raise InvalidInput(
                f"amount={delta} cannot be applied to account={account_id} exactly"
            ) from exc


def build_account_ledger(state_client=None):
    if state_client is None:
        state_client = apps.get_app_config("accounts").state_client
    return AccountLedger(state_client)
