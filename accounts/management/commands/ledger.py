from django.core.management.base import BaseCommand, CommandError

from accounts.domain.exceptions import LedgerError
from accounts.domain.ledger import build_account_ledger


class Command(BaseCommand):
    help = "Read an account or apply a deposit/withdrawal against the state store."

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest="action", required=True)

        get_parser = subparsers.add_parser("get", help="Show an account balance")
        get_parser.add_argument("account_id")

        for action in ("deposit", "withdraw"):
            action_parser = subparsers.add_parser(
                action, help=f"{action.capitalize()} an amount"
            )
            action_parser.add_argument("account_id")
            action_parser.add_argument("amount")

    def handle(self, *args, **options):
        action = options["action"]
        ledger = build_account_ledger()

        try:
            if action == "get":
                account = ledger.get(options["account_id"])
            else:
                account = getattr(ledger, action)(
                    options["account_id"], options["amount"]
                )
        except LedgerError as exc:
            raise CommandError(f"{action} failed: {exc}") from exc

        self.stdout.write(
            self.style.SUCCESS(f"account={account.id} balance={account.balance}")
        )
