import json
import logging

import redis
from django.conf import settings

from accounts.domain.entities import StateEntry
from accounts.integrations.state_store import (
    BaseStateClient,
    StateConflict,
    StoreTransportError,
    decode_account,
    require_value,
)

logger = logging.getLogger(__name__)


# Returns the new version, or 0 when the expected version does not match.
# An empty expected version means "the key must not exist yet".
_COMPARE_AND_SET_LUA = """
local key = KEYS[1]
local expected = ARGV[1]
local data = ARGV[2]

local current = redis.call("HGET", key, "version")

if expected == "" then
  if current then
    return 0
  end
elseif current ~= expected then
  return 0
end

local version = redis.call("HINCRBY", key, "version", 1)
redis.call("HSET", key, "data", data)
return version
"""


def record_key(store, key):
    return f"{store}||{key}"


class RedisStateClient(BaseStateClient):
    def __init__(self, *, redis_client):
        self.redis_client = redis_client
        self._compare_and_set = self.redis_client.register_script(
            _COMPARE_AND_SET_LUA
        )

    def fetch(self, store, key):
        try:
            data, version = self.redis_client.hmget(
                record_key(store, key), "data", "version"
            )
        except redis.RedisError as exc:
            logger.warning(
                "event=state_fetch_failed backend=redis store=%s key=%s error=%s",
                store,
                key,
                exc.__class__.__name__,
            )
            raise StoreTransportError(f"failed to fetch key={key}") from exc

        if data is None:
            return StateEntry(store=store, key=key)

        try:
            document = json.loads(data)
        except ValueError as exc:
            raise StoreTransportError(f"stored value for key={key} is not JSON") from exc

        return StateEntry(
            store=store,
            key=key,
            value=decode_account(key, document),
            etag=str(version) if version is not None else None,
        )

    def save(self, store, entry):
        data = json.dumps(require_value(entry).to_document())
        try:
            version = self._compare_and_set(
                keys=[record_key(store, entry.key)],
                args=[entry.etag or "", data],
            )
        except redis.RedisError as exc:
            logger.warning(
                "event=state_save_failed backend=redis store=%s key=%s error=%s",
                store,
                entry.key,
                exc.__class__.__name__,
            )
            raise StoreTransportError(f"failed to save key={entry.key}") from exc

        if int(version) == 0:
            raise StateConflict(f"key={entry.key} etag={entry.etag} is stale")


def build_redis_state_client():
    redis_client = redis.Redis.from_url(
        settings.STATE_REDIS_URL,
        socket_connect_timeout=settings.STATE_REDIS_SOCKET_CONNECT_TIMEOUT,
        socket_timeout=settings.STATE_REDIS_SOCKET_TIMEOUT,
        decode_responses=True,
    )
    return RedisStateClient(redis_client=redis_client)
