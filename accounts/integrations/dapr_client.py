import logging
from urllib.parse import quote

from django.conf import settings

from accounts.domain.entities import StateEntry
from accounts.integrations.http import HttpClient, NetworkRequestFailed, build_session
from accounts.integrations.state_store import (
    BaseStateClient,
    StateConflict,
    StoreTransportError,
    decode_account,
    require_value,
)

logger = logging.getLogger(__name__)

API_TOKEN_HEADER = "dapr-api-token"


def _is_etag_mismatch(response):
    if response.status_code == 409:
        return True
    if response.status_code not in (400, 500):
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    message = str(body.get("message", "")).lower()
    return body.get("errorCode") == "ERR_STATE_SAVE" and "etag" in message


class DaprStateClient(BaseStateClient):
    """State client speaking the sidecar's HTTP state API.

    Saves always use first-write concurrency, so the sidecar rejects a write
    whose etag is no longer current instead of overwriting it.
    """

    def __init__(self, *, base_url=None, http_client=None, api_token=None):
        self.base_url = (base_url or settings.DAPR_HTTP_ENDPOINT).rstrip("/")
        token = settings.DAPR_API_TOKEN if api_token is None else api_token
        self.http_client = http_client or HttpClient(
            session=build_session({API_TOKEN_HEADER: token} if token else None),
            connect_timeout=settings.DAPR_TIMEOUT,
            read_timeout=settings.DAPR_TIMEOUT,
        )

    def _state_url(self, store, key=None):
        url = f"{self.base_url}/v1.0/state/{quote(store, safe='')}"
        if key is not None:
            url = f"{url}/{quote(key, safe='')}"
        return url

    def fetch(self, store, key):
        try:
            response = self.http_client.get_json(
                self._state_url(store, key),
                params={"consistency": "strong"},
            )
        except NetworkRequestFailed as exc:
            logger.warning(
                "event=state_fetch_failed backend=dapr store=%s key=%s reason=network_error",
                store,
                key,
            )
            raise StoreTransportError(f"failed to fetch key={key}") from exc

        if response.status_code == 204 or (
            response.status_code == 200 and not response.content
        ):
            return StateEntry(store=store, key=key)

        if response.status_code != 200:
            logger.warning(
                "event=state_fetch_failed backend=dapr store=%s key=%s http_status=%s",
                store,
                key,
                response.status_code,
            )
            raise StoreTransportError(
                f"fetch key={key} answered http_status={response.status_code}"
            )

        try:
            document = response.json()
        except ValueError as exc:
            raise StoreTransportError(f"stored value for key={key} is not JSON") from exc

        return StateEntry(
            store=store,
            key=key,
            value=decode_account(key, document),
            etag=response.headers.get("ETag"),
        )

    def save(self, store, entry):
        item = {
            "key": entry.key,
            "value": require_value(entry).to_document(),
            "options": {"concurrency": "first-write", "consistency": "strong"},
        }
        if entry.etag is not None:
            item["etag"] = entry.etag

        try:
            response = self.http_client.post_json(self._state_url(store), json=[item])
        except NetworkRequestFailed as exc:
            logger.warning(
                "event=state_save_failed backend=dapr store=%s key=%s reason=network_error",
                store,
                entry.key,
            )
            raise StoreTransportError(f"failed to save key={entry.key}") from exc

        if 200 <= response.status_code < 300:
            return

        if _is_etag_mismatch(response):
            raise StateConflict(f"key={entry.key} etag={entry.etag} is stale")

        logger.warning(
            "event=state_save_failed backend=dapr store=%s key=%s http_status=%s",
            store,
            entry.key,
            response.status_code,
        )
        raise StoreTransportError(
            f"save key={entry.key} answered http_status={response.status_code}"
        )
