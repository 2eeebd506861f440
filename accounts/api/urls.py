from django.urls import path

from accounts.api.views import (
    AccountDetailAPIView,
    DepositAPIView,
    SubscriptionListAPIView,
    TopicEventAPIView,
    WithdrawAPIView,
)

urlpatterns = [
    path(
        "dapr/subscribe",
        SubscriptionListAPIView.as_view(),
        name="pubsub-subscriptions",
    ),
    path("events/<str:topic>", TopicEventAPIView.as_view(), name="topic-event"),
    path("deposit", DepositAPIView.as_view(), name="account-deposit"),
    path("withdraw", WithdrawAPIView.as_view(), name="account-withdraw"),
    path("<str:account_id>", AccountDetailAPIView.as_view(), name="account-detail"),
]
