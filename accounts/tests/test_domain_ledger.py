from decimal import Decimal
from unittest.mock import Mock

from django.test import SimpleTestCase, override_settings

from accounts.domain.entities import Account, StateEntry
from accounts.domain.exceptions import (
    AccountNotFound,
    ConcurrencyConflict,
    InsufficientFunds,
    InvalidInput,
    StoreUnavailable,
)
from accounts.domain.ledger import AccountLedger
from accounts.integrations.state_store import (
    InMemoryStateClient,
    StateConflict,
    StoreTransportError,
)


class RecordingStateClient(InMemoryStateClient):
    """In-memory client that counts calls and can run code right before a save."""

    def __init__(self):
        super().__init__()
        self.fetches = 0
        self.saved = []
        self.before_next_save = None

    def fetch(self, store, key):
        self.fetches += 1
        return super().fetch(store, key)

    def save(self, store, entry):
        hook, self.before_next_save = self.before_next_save, None
        if hook is not None:
            hook()
        super().save(store, entry)
        self.saved.append(entry.value)


def make_ledger(state_client, **kwargs):
    kwargs.setdefault("store_name", "statestore")
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("retry_base_delay", 0)
    kwargs.setdefault("retry_max_delay", 0)
    kwargs.setdefault("allow_negative_balance", True)
    kwargs.setdefault("sleep", Mock())
    return AccountLedger(state_client, **kwargs)


class AccountLedgerReadTests(SimpleTestCase):
    def setUp(self):
        self.state_client = RecordingStateClient()
        self.ledger = make_ledger(self.state_client)

    def test_get_missing_account_raises_not_found(self):
        with self.assertRaises(AccountNotFound) as ctx:
            self.ledger.get("A1")

        self.assertEqual(ctx.exception.account_id, "A1")

    def test_get_is_idempotent_without_writes(self):
        self.ledger.deposit("A1", 40)

        first = self.ledger.get("A1")
        second = self.ledger.get("A1")

        self.assertEqual(first, second)
        self.assertEqual(len(self.state_client.saved), 1)

    def test_get_rejects_blank_id_before_touching_the_store(self):
        with self.assertRaises(InvalidInput):
            self.ledger.get("  ")

        self.assertEqual(self.state_client.fetches, 0)


class AccountLedgerDeltaTests(SimpleTestCase):
    def setUp(self):
        self.state_client = RecordingStateClient()
        self.ledger = make_ledger(self.state_client)

    def test_deposit_creates_missing_account(self):
        account = self.ledger.apply_delta("A1", 100)

        self.assertEqual(account, Account(id="A1", balance=Decimal("100")))
        self.assertEqual(self.ledger.get("A1"), account)

    def test_deposit_adds_to_existing_balance(self):
        self.ledger.deposit("A1", "10.50")

        account = self.ledger.deposit("A1", "4.25")

        self.assertEqual(account.balance, Decimal("14.75"))

    def test_withdraw_on_missing_account_fails_without_writing(self):
        with self.assertRaises(AccountNotFound):
            self.ledger.withdraw("A1", 10)

        self.assertEqual(self.state_client.saved, [])
        self.assertEqual(self.state_client.fetches, 1)

    def test_withdraw_may_go_negative_by_default(self):
        self.ledger.deposit("A1", 10)

        account = self.ledger.withdraw("A1", 25)

        self.assertEqual(account.balance, Decimal("-15"))

    def test_withdraw_below_zero_is_rejected_when_negative_balance_is_disallowed(self):
        ledger = make_ledger(self.state_client, allow_negative_balance=False)
        ledger.deposit("A1", 10)

        with self.assertRaises(InsufficientFunds):
            ledger.withdraw("A1", 25)

        self.assertEqual(len(self.state_client.saved), 1)
        self.assertEqual(ledger.get("A1").balance, Decimal("10"))

    def test_withdraw_down_to_exactly_zero_is_allowed_without_negative_balance(self):
        ledger = make_ledger(self.state_client, allow_negative_balance=False)
        ledger.deposit("A1", 10)

        self.assertEqual(ledger.withdraw("A1", 10).balance, Decimal("0"))

    def test_deposit_then_withdraw_round_trips(self):
        self.ledger.deposit("A1", 70)
        before = self.ledger.get("A1")

        self.ledger.deposit("A1", "33.3")
        after = self.ledger.withdraw("A1", "33.3")

        self.assertEqual(after, before)

    def test_invalid_amount_is_rejected_before_any_store_call(self):
        with self.assertRaises(InvalidInput):
            self.ledger.deposit("A1", "ten")

        self.assertEqual(self.state_client.fetches, 0)

    def test_oversized_amount_is_rejected_before_any_store_call(self):
        for amount in ("1e1000000", "0.000000000000000000000000001"):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidInput):
                    self.ledger.deposit("A1", amount)

        self.assertEqual(self.state_client.fetches, 0)
        self.assertEqual(self.state_client.saved, [])

    def test_delta_that_would_lose_precision_is_rejected_without_writing(self):
        largest = "99999999999999999999.99999999"
        self.ledger.deposit("A1", largest)

        with self.assertRaises(InvalidInput):
            self.ledger.deposit("A1", largest)

        self.assertEqual(len(self.state_client.saved), 1)
        self.assertEqual(self.ledger.get("A1").balance, Decimal(largest))


class AccountLedgerConcurrencyTests(SimpleTestCase):
    def test_interleaved_deposits_do_not_lose_updates(self):
        state_client = RecordingStateClient()
        first_caller = make_ledger(state_client)
        second_caller = make_ledger(state_client)

        # The second caller commits between the first caller's fetch and save.
        state_client.before_next_save = lambda: second_caller.apply_delta("A1", 30)

        account = first_caller.apply_delta("A1", 50)

        self.assertEqual(account.balance, Decimal("80"))
        self.assertEqual(first_caller.get("A1").balance, Decimal("80"))
        self.assertEqual(
            state_client.saved,
            [
                Account(id="A1", balance=Decimal("30")),
                Account(id="A1", balance=Decimal("80")),
            ],
        )
        first_caller.sleep.assert_not_called()

    def test_conflict_retry_refetches_and_uses_fresh_etag(self):
        state_client = Mock()
        state_client.fetch.side_effect = [
            StateEntry(store="statestore", key="A1", value=Account(id="A1"), etag="1"),
            StateEntry(
                store="statestore",
                key="A1",
                value=Account(id="A1", balance=Decimal("5")),
                etag="2",
            ),
        ]
        state_client.save.side_effect = [StateConflict("stale"), None]
        ledger = make_ledger(state_client)

        account = ledger.deposit("A1", 10)

        self.assertEqual(account.balance, Decimal("15"))
        self.assertEqual(state_client.fetch.call_count, 2)
        saved_entry = state_client.save.call_args[0][1]
        self.assertEqual(saved_entry.etag, "2")

    def test_conflict_exhaustion_raises_after_configured_attempts(self):
        state_client = Mock()
        state_client.fetch.return_value = StateEntry(store="statestore", key="A1")
        state_client.save.side_effect = StateConflict("always")
        ledger = make_ledger(state_client, max_attempts=4)

        with self.assertRaises(ConcurrencyConflict) as ctx:
            ledger.deposit("A1", 10)

        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(state_client.save.call_count, 4)
        self.assertEqual(state_client.fetch.call_count, 4)

    def test_backoff_sleeps_between_conflicting_attempts(self):
        state_client = Mock()
        state_client.fetch.return_value = StateEntry(store="statestore", key="A1")
        state_client.save.side_effect = [StateConflict("stale"), None]
        sleep = Mock()
        ledger = make_ledger(
            state_client, retry_base_delay=0.01, retry_max_delay=0.01, sleep=sleep
        )

        ledger.deposit("A1", 1)

        self.assertLessEqual(sleep.call_count, 1)
        for call in sleep.call_args_list:
            self.assertLessEqual(call.args[0], 0.01)


class AccountLedgerStoreFailureTests(SimpleTestCase):
    def test_fetch_transport_error_is_not_retried(self):
        state_client = Mock()
        state_client.fetch.side_effect = StoreTransportError("down")
        ledger = make_ledger(state_client)

        with self.assertRaises(StoreUnavailable):
            ledger.deposit("A1", 10)

        state_client.fetch.assert_called_once()
        state_client.save.assert_not_called()

    def test_save_transport_error_is_not_retried(self):
        state_client = Mock()
        state_client.fetch.return_value = StateEntry(store="statestore", key="A1")
        state_client.save.side_effect = StoreTransportError("timeout")
        ledger = make_ledger(state_client)

        with self.assertRaises(StoreUnavailable):
            ledger.deposit("A1", 10)

        state_client.fetch.assert_called_once()
        state_client.save.assert_called_once()

    def test_get_transport_error_is_store_unavailable(self):
        state_client = Mock()
        state_client.fetch.side_effect = StoreTransportError("down")

        with self.assertRaises(StoreUnavailable):
            make_ledger(state_client).get("A1")


class AccountLedgerSettingsTests(SimpleTestCase):
    @override_settings(
        STATE_STORE_NAME="ledgerstore",
        LEDGER_MAX_ATTEMPTS=2,
        LEDGER_ALLOW_NEGATIVE_BALANCE=False,
    )
    def test_defaults_come_from_settings(self):
        ledger = AccountLedger(InMemoryStateClient())

        self.assertEqual(ledger.store_name, "ledgerstore")
        self.assertEqual(ledger.max_attempts, 2)
        self.assertFalse(ledger.allow_negative_balance)

    def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            make_ledger(InMemoryStateClient(), max_attempts=0)
