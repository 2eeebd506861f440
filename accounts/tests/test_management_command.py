from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase


class LedgerCommandTests(TestCase):
    def _call(self, *args):
        out = StringIO()
        call_command("ledger", *args, stdout=out)
        return out.getvalue()

    def test_deposit_withdraw_and_get(self):
        self.assertIn("balance=100", self._call("deposit", "A1", "100"))
        self.assertIn("balance=60", self._call("withdraw", "A1", "40"))
        self.assertIn("account=A1 balance=60", self._call("get", "A1"))

    def test_missing_account_raises_command_error(self):
        with self.assertRaises(CommandError):
            self._call("withdraw", "ghost", "1")

    def test_invalid_amount_raises_command_error(self):
        with self.assertRaises(CommandError):
            self._call("deposit", "A1", "lots")

    def test_out_of_range_amount_raises_command_error(self):
        with self.assertRaises(CommandError):
            self._call("deposit", "A1", "1e1000000")
