from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation


class MalformedAccount(ValueError):
    """Raised when a stored account document cannot be decoded."""


@dataclass(frozen=True)
class Account:
    id: str
    balance: Decimal = Decimal("0")

    def __post_init__(self):
        if not isinstance(self.balance, Decimal):
            object.__setattr__(self, "balance", Decimal(str(self.balance)))

    def with_balance(self, balance):
        return replace(self, balance=balance)

    def to_document(self):
        return {"id": self.id, "balance": str(self.balance)}

    @classmethod
    def from_document(cls, document, *, fallback_id=None):
        if not isinstance(document, dict):
            raise MalformedAccount(
                f"account document must be an object, got={type(document).__name__}"
            )

        account_id = document.get("id") or fallback_id
        if not account_id:
            raise MalformedAccount("account document has no id")

        raw_balance = document.get("balance", 0)
        if isinstance(raw_balance, bool):
            raise MalformedAccount("account balance must be numeric")
        try:
            balance = Decimal(str(raw_balance))
        except (InvalidOperation, ValueError) as exc:
            raise MalformedAccount(
                f"account={account_id} has a non-numeric balance"
            ) from exc
        if not balance.is_finite():
            raise MalformedAccount(f"account={account_id} has a non-finite balance")

        return cls(id=str(account_id), balance=balance)


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: Decimal


@dataclass(frozen=True)
class StateEntry:
    """One fetched snapshot of a keyed record.

    ``etag`` identifies the version that was read. ``None`` means the key did
    not exist at fetch time, so a save only succeeds if nobody created it in
    the meantime.
    """

    store: str
    key: str
    value: Account | None = None
    etag: str | None = None

    @property
    def exists(self):
        return self.value is not None

    def with_value(self, value):
        return replace(self, value=value)
