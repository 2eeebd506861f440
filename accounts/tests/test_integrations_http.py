from unittest.mock import Mock

import requests
from django.test import SimpleTestCase

from accounts.integrations.http import HttpClient, NetworkRequestFailed


class HttpClientTests(SimpleTestCase):
    def test_post_json_sends_timeouts_and_body(self):
        session = Mock()
        response = Mock()
        response.status_code = 204
        session.request.return_value = response

        client = HttpClient(session=session, connect_timeout=0.5, read_timeout=2.0)

        result = client.post_json("http://sidecar.local/v1.0/state/s", json=[])

        self.assertIs(result, response)
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("POST", "http://sidecar.local/v1.0/state/s"))
        self.assertEqual(kwargs["timeout"], (0.5, 2.0))
        self.assertEqual(kwargs["json"], [])

    def test_network_errors_are_not_retried(self):
        for error in (requests.Timeout("slow"), requests.ConnectionError("down")):
            with self.subTest(error=error.__class__.__name__):
                session = Mock()
                session.request.side_effect = error

                client = HttpClient(session=session)

                with self.assertRaises(NetworkRequestFailed):
                    client.get_json("http://sidecar.local/v1.0/state/s/A1")

                session.request.assert_called_once()
