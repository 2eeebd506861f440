class LedgerError(Exception):
    """Base class for ledger domain errors."""


class InvalidInput(LedgerError):
    """Raised when an account id or amount is malformed."""


class AccountNotFound(LedgerError):
    """Raised when the operation requires an account that does not exist."""

    def __init__(self, account_id):
        super().__init__(f"account={account_id} does not exist")
        self.account_id = account_id


class InsufficientFunds(LedgerError):
    """Raised when a withdrawal would drive the balance below zero."""

    def __init__(self, account_id, balance, amount):
        super().__init__(
            f"account={account_id} balance={balance} cannot cover amount={amount}"
        )
        self.account_id = account_id
        self.balance = balance
        self.amount = amount


class ConcurrencyConflict(LedgerError):
    """Raised when conditional saves keep conflicting after all attempts."""

    def __init__(self, account_id, attempts):
        super().__init__(
            f"account={account_id} update conflicted on all {attempts} attempts"
        )
        self.account_id = account_id
        self.attempts = attempts


class StoreUnavailable(LedgerError):
    """Raised when the state store cannot be reached or fails."""
