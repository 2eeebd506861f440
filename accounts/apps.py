from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    state_client = None

    def ready(self):
        from accounts.integrations.state_store import build_state_client

        self.state_client = build_state_client()
