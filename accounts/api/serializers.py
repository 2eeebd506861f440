from rest_framework import serializers

from accounts.domain.constants import (
    MAX_ACCOUNT_ID_LENGTH,
    MAX_AMOUNT_DECIMAL_PLACES,
    MAX_AMOUNT_DIGITS,
)


class AccountSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    balance = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        coerce_to_string=False,
        read_only=True,
    )


class TransactionRequestSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=MAX_ACCOUNT_ID_LENGTH)
    amount = serializers.DecimalField(
        max_digits=MAX_AMOUNT_DIGITS,
        decimal_places=MAX_AMOUNT_DECIMAL_PLACES,
    )
