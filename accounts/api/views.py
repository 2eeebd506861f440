import logging

from rest_framework import status as http_status
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.parsers import JSONParser
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.api.parsers import CloudEventParser
from accounts.api.responses import api_response
from accounts.api.serializers import AccountSerializer, TransactionRequestSerializer
from accounts.domain.constants import EventOutcome
from accounts.domain.exceptions import (
    AccountNotFound,
    ConcurrencyConflict,
    InsufficientFunds,
    InvalidInput,
    StoreUnavailable,
)
from accounts.domain.ledger import build_account_ledger
from accounts.events.handlers import (
    handle_transaction_event,
    subscriptions,
    unwrap_cloud_event,
)

logger = logging.getLogger(__name__)


def ledger_error_response(exc):
    if isinstance(exc, AccountNotFound):
        return api_response(
            detail=f"account={exc.account_id} not found",
            message="Account was not found.",
            status_code=http_status.HTTP_404_NOT_FOUND,
            data=None,
        )
    if isinstance(exc, ConcurrencyConflict):
        return api_response(
            detail=str(exc),
            message="Account was modified concurrently, try again.",
            status_code=http_status.HTTP_409_CONFLICT,
            data=None,
        )
    if isinstance(exc, InsufficientFunds):
        return api_response(
            detail=str(exc),
            message="Insufficient funds.",
            status_code=http_status.HTTP_409_CONFLICT,
            data=None,
        )
    if isinstance(exc, StoreUnavailable):
        return api_response(
            detail=str(exc),
            message="State store is unavailable.",
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            data=None,
        )
    return api_response(
        detail=str(exc),
        message="Invalid request.",
        status_code=http_status.HTTP_400_BAD_REQUEST,
        data=None,
    )


class AccountDetailAPIView(APIView):
    def get(self, request, account_id):
        try:
            account = build_account_ledger().get(account_id)
        except (AccountNotFound, StoreUnavailable, InvalidInput) as exc:
            return ledger_error_response(exc)

        return api_response(
            detail="Account fetched.",
            message="Account retrieved successfully.",
            status_code=http_status.HTTP_200_OK,
            data=AccountSerializer(account).data,
        )


class TransactionAPIView(APIView):
    parser_classes = [JSONParser, CloudEventParser]
    operation = None
    success_message = None

    def post(self, request):
        try:
            payload = unwrap_cloud_event(request.data)
        except InvalidInput as exc:
            return ledger_error_response(exc)

        serializer = TransactionRequestSerializer(data=payload)
        if not serializer.is_valid():
            return api_response(
                detail=serializer.errors,
                message="Invalid request body.",
                status_code=http_status.HTTP_400_BAD_REQUEST,
                data=None,
            )

        ledger = build_account_ledger()
        try:
            account = getattr(ledger, self.operation)(
                serializer.validated_data["id"],
                serializer.validated_data["amount"],
            )
        except (
            AccountNotFound,
            ConcurrencyConflict,
            InsufficientFunds,
            InvalidInput,
            StoreUnavailable,
        ) as exc:
            return ledger_error_response(exc)

        return api_response(
            detail=f"{self.operation.capitalize()} applied.",
            message=self.success_message,
            status_code=http_status.HTTP_200_OK,
            data=AccountSerializer(account).data,
        )


class DepositAPIView(TransactionAPIView):
    operation = "deposit"
    success_message = "Deposit completed successfully."


class WithdrawAPIView(TransactionAPIView):
    operation = "withdraw"
    success_message = "Withdrawal completed successfully."


class SubscriptionListAPIView(APIView):
    def get(self, request):
        return Response(subscriptions())


class TopicEventAPIView(APIView):
    parser_classes = [JSONParser, CloudEventParser]

    def post(self, request, topic):
        try:
            payload = request.data
        except (ParseError, UnsupportedMediaType) as exc:
            logger.warning(
                "event=transaction_event_dropped topic=%s reason=unparseable_body error=%s",
                topic,
                exc.__class__.__name__,
            )
            return Response({"status": EventOutcome.DROP.value})

        outcome = handle_transaction_event(
            topic,
            payload,
            ledger=build_account_ledger(),
        )
        return Response({"status": outcome.value}, status=http_status.HTTP_200_OK)
