import requests
from django.conf import settings

NETWORK_ERRORS = (requests.Timeout, requests.ConnectionError)


class NetworkRequestFailed(Exception):
    """Raised when the request never got an HTTP response."""


def build_session(headers=None):
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=settings.STATE_HTTP_MAX_CONNECTIONS,
        pool_maxsize=settings.STATE_HTTP_MAX_KEEPALIVE,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    if headers:
        session.headers.update(headers)
    return session


class HttpClient:
    def __init__(self, *, session=None, connect_timeout=1.0, read_timeout=3.0):
        self.session = session or build_session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def _send(self, method, url, **kwargs):
        try:
            return self.session.request(
                method,
                url,
                timeout=(self.connect_timeout, self.read_timeout),
                **kwargs,
            )
        except NETWORK_ERRORS as exc:
            raise NetworkRequestFailed(f"{method} {url} failed: {exc}") from exc

    def post_json(self, url, *, json=None, headers=None):
        return self._send("POST", url, json=json, headers=headers)

    def get_json(self, url, *, params=None, headers=None):
        return self._send("GET", url, params=params, headers=headers)
