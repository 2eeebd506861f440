from enum import Enum


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class EventOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    RETRY = "RETRY"
    DROP = "DROP"


MAX_ACCOUNT_ID_LENGTH = 256
MAX_AMOUNT_DIGITS = 28
MAX_AMOUNT_DECIMAL_PLACES = 8
