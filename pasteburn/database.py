"""
Database layer for Redis operations with in-memory fallback for development.
Handles paste insert/lookup, burn-on-read consumption, renewal, expiry
sweeps, public listing and the total-created counter.

Every operation that reads and then writes a record runs as a single Lua
script on Redis (or under one lock in memory), so concurrent readers of a
burn-limited paste can never consume more views than it was created with.
"""
import functools
import logging
import threading
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, NamedTuple, Optional

from redis import Redis
from redis.exceptions import RedisError

from pasteburn.errors import ConflictError, StorageFullError, StoreUnavailableError
from pasteburn.models import Paste, from_millis, to_millis

logger = logging.getLogger(__name__)


class Status(IntEnum):
    MISSING = 0
    EXPIRED = 1
    EXHAUSTED = 2
    OK = 3
    NO_EXPIRY = 4


class ViewOutcome(NamedTuple):
    status: Status
    paste: Optional[Paste] = None


class RenewOutcome(NamedTuple):
    status: Status
    expires_at: Optional[datetime] = None


class PasteStore:
    """Interface shared by the Redis and in-memory stores."""

    using_fallback = False

    def ping(self) -> bool:
        raise NotImplementedError

    def insert(
        self,
        paste: Paste,
        max_pastes: Optional[int] = None,
        max_total_length: Optional[int] = None,
    ) -> int:
        """Store a new paste and return the updated total-created counter."""
        raise NotImplementedError

    def exists(self, token: str) -> bool:
        raise NotImplementedError

    def get(self, token: str) -> Optional[Paste]:
        raise NotImplementedError

    def decrement_remaining_views(self, token: str) -> Optional[int]:
        """
        Take one view off the budget, deleting the paste when it reaches zero.

        Returns the new remaining count, or None when the paste is absent,
        already exhausted or not view-limited.
        """
        raise NotImplementedError

    def consume_view(self, token: str, now: datetime) -> ViewOutcome:
        raise NotImplementedError

    def renew(
        self, token: str, now: datetime, duration_seconds: int, policy: str = "reset"
    ) -> RenewOutcome:
        raise NotImplementedError

    def delete(self, token: str) -> bool:
        raise NotImplementedError

    def delete_expired(self, now: datetime, limit: Optional[int] = None) -> int:
        raise NotImplementedError

    def list_public(self, limit: int, offset: int, now: datetime) -> List[Paste]:
        raise NotImplementedError

    def count_public(self, now: datetime) -> int:
        raise NotImplementedError

    def count_live(self, now: datetime) -> int:
        raise NotImplementedError

    def count_total(self) -> int:
        raise NotImplementedError


class InMemoryPasteStore(PasteStore):
    """Simple in-memory store for development/testing (when Redis unavailable)."""

    def __init__(self):
        self.store: Dict[str, Paste] = {}
        self.total = 0
        self.used = 0
        self._lock = threading.Lock()

    def ping(self) -> bool:
        """Health check."""
        return True

    def insert(self, paste, max_pastes=None, max_total_length=None):
        with self._lock:
            if paste.token in self.store:
                raise ConflictError(paste.token)
            if max_pastes is not None and len(self.store) >= max_pastes:
                raise StorageFullError()
            if max_total_length is not None and self.used + paste.size > max_total_length:
                raise StorageFullError()
            self.store[paste.token] = paste
            self.used += paste.size
            self.total += 1
            return self.total

    def exists(self, token):
        with self._lock:
            return token in self.store

    def get(self, token):
        with self._lock:
            return self.store.get(token)

    def decrement_remaining_views(self, token):
        with self._lock:
            paste = self.store.get(token)
            if paste is None or paste.remaining_views is None or paste.remaining_views <= 0:
                return None
            left = paste.remaining_views - 1
            if left == 0:
                self._drop(token)
            else:
                self.store[token] = paste.model_copy(update={"remaining_views": left})
            return left

    def consume_view(self, token, now):
        with self._lock:
            paste = self.store.get(token)
            if paste is None:
                return ViewOutcome(Status.MISSING)
            if paste.is_expired(now):
                return ViewOutcome(Status.EXPIRED)
            if paste.is_exhausted():
                return ViewOutcome(Status.EXHAUSTED)
            update: Dict[str, Any] = {"view_count": paste.view_count + 1}
            if paste.remaining_views is not None:
                update["remaining_views"] = paste.remaining_views - 1
            paste = paste.model_copy(update=update)
            if paste.remaining_views == 0:
                self._drop(token)
            else:
                self.store[token] = paste
            return ViewOutcome(Status.OK, paste)

    def renew(self, token, now, duration_seconds, policy="reset"):
        with self._lock:
            paste = self.store.get(token)
            if paste is None:
                return RenewOutcome(Status.MISSING)
            if paste.is_expired(now):
                return RenewOutcome(Status.EXPIRED)
            if paste.is_exhausted():
                return RenewOutcome(Status.EXHAUSTED)
            if paste.expires_at is None:
                return RenewOutcome(Status.NO_EXPIRY)
            now_ms = to_millis(now)
            base = now_ms
            if policy == "extend":
                base = max(to_millis(paste.expires_at), now_ms)
            expires_ms = base + duration_seconds * 1000
            expires_at = from_millis(expires_ms)
            self.store[token] = paste.model_copy(
                update={
                    "expires_at": expires_at,
                    "duration_seconds": (expires_ms - now_ms) // 1000,
                }
            )
            return RenewOutcome(Status.OK, expires_at)

    def delete(self, token):
        with self._lock:
            return self._drop(token)

    def delete_expired(self, now, limit=None):
        with self._lock:
            doomed = [
                token for token, paste in self.store.items() if not paste.is_live(now)
            ]
            if limit:
                doomed = doomed[:limit]
            for token in doomed:
                self._drop(token)
            return len(doomed)

    def list_public(self, limit, offset, now):
        with self._lock:
            public = [p for p in self.store.values() if p.is_public and p.is_live(now)]
        public.sort(key=lambda p: p.created_at, reverse=True)
        return public[offset:offset + limit]

    def count_public(self, now):
        with self._lock:
            return sum(1 for p in self.store.values() if p.is_public and p.is_live(now))

    def count_live(self, now):
        with self._lock:
            return sum(1 for p in self.store.values() if p.is_live(now))

    def count_total(self):
        with self._lock:
            return self.total

    def _drop(self, token: str) -> bool:
        paste = self.store.pop(token, None)
        if paste is None:
            return False
        self.used -= paste.size
        return True


# KEYS for every per-paste script: paste hash, index, expiry, public, bytes,
# public-expiry.
# ARGV[1] is always the token.
_DROP = """
local function drop(key, token)
  local size = redis.call('HGET', key, 'size') or '0'
  local removed = redis.call('DEL', key)
  redis.call('ZREM', KEYS[2], token)
  redis.call('ZREM', KEYS[3], token)
  redis.call('ZREM', KEYS[4], token)
  redis.call('ZREM', KEYS[6], token)
  if removed == 1 then
    redis.call('DECRBY', KEYS[5], size)
  end
  return removed
end
"""

_INSERT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return -1
end
local size = tonumber(ARGV[5])
if ARGV[6] ~= '' and redis.call('ZCARD', KEYS[2]) >= tonumber(ARGV[6]) then
  return -2
end
if ARGV[7] ~= '' then
  local used = tonumber(redis.call('GET', KEYS[5]) or '0')
  if used + size > tonumber(ARGV[7]) then
    return -2
  end
end
for i = 8, #ARGV, 2 do
  redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
if ARGV[3] ~= '' then
  redis.call('ZADD', KEYS[3], ARGV[3], ARGV[1])
end
if ARGV[4] == '1' then
  redis.call('ZADD', KEYS[4], ARGV[2], ARGV[1])
  if ARGV[3] ~= '' then
    redis.call('ZADD', KEYS[6], ARGV[3], ARGV[1])
  end
end
redis.call('INCRBY', KEYS[5], ARGV[5])
return redis.call('INCR', KEYS[7])
"""

_DECREMENT = _DROP + """
local remaining = redis.call('HGET', KEYS[1], 'remaining_views')
if not remaining or tonumber(remaining) <= 0 then
  return -1
end
local left = redis.call('HINCRBY', KEYS[1], 'remaining_views', '-1')
if left == 0 then
  drop(KEYS[1], ARGV[1])
end
return left
"""

_CONSUME = _DROP + """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return {0}
end
local expires_at = redis.call('HGET', KEYS[1], 'expires_at')
if expires_at and tonumber(expires_at) <= tonumber(ARGV[2]) then
  return {1}
end
local remaining = redis.call('HGET', KEYS[1], 'remaining_views')
if remaining and tonumber(remaining) <= 0 then
  return {2}
end
redis.call('HINCRBY', KEYS[1], 'views', '1')
local left = -1
if remaining then
  left = redis.call('HINCRBY', KEYS[1], 'remaining_views', '-1')
end
local reply = {3}
for _, value in ipairs(redis.call('HGETALL', KEYS[1])) do
  reply[#reply + 1] = value
end
if left == 0 then
  drop(KEYS[1], ARGV[1])
end
return reply
"""

_RENEW = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return {0}
end
local now = tonumber(ARGV[2])
local expires_at = redis.call('HGET', KEYS[1], 'expires_at')
if expires_at and tonumber(expires_at) <= now then
  return {1}
end
local remaining = redis.call('HGET', KEYS[1], 'remaining_views')
if remaining and tonumber(remaining) <= 0 then
  return {2}
end
if not expires_at then
  return {4}
end
local base = now
if ARGV[4] == 'extend' and tonumber(expires_at) > now then
  base = tonumber(expires_at)
end
local new_expires = base + tonumber(ARGV[3])
local stamp = string.format('%d', new_expires)
local duration = string.format('%d', math.floor((new_expires - now) / 1000))
redis.call('HSET', KEYS[1], 'expires_at', stamp)
redis.call('HSET', KEYS[1], 'duration', duration)
redis.call('ZADD', KEYS[3], stamp, ARGV[1])
if redis.call('ZSCORE', KEYS[4], ARGV[1]) then
  redis.call('ZADD', KEYS[6], stamp, ARGV[1])
end
return {3, stamp}
"""

# ARGV[1] is the paste key prefix here, ARGV[2] the cutoff, ARGV[3] the batch limit.
_SWEEP = _DROP + """
local tokens
if tonumber(ARGV[3]) > 0 then
  tokens = redis.call('ZRANGEBYSCORE', KEYS[3], '-inf', ARGV[2], 'LIMIT', '0', ARGV[3])
else
  tokens = redis.call('ZRANGEBYSCORE', KEYS[3], '-inf', ARGV[2])
end
for _, token in ipairs(tokens) do
  drop(ARGV[1] .. token, token)
end
return #tokens
"""


def _guard(method):
    """Translate Redis failures into StoreUnavailableError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except RedisError as e:
            logger.error(f"Redis error in {method.__name__}: {type(e).__name__}: {e}")
            raise StoreUnavailableError() from e

    return wrapper


def _to_hash(paste: Paste) -> Dict[str, str]:
    data = {
        "token": paste.token,
        "title": paste.title,
        "content": paste.content,
        "language": paste.language,
        "created_at": str(to_millis(paste.created_at)),
        "is_public": "1" if paste.is_public else "0",
        "views": str(paste.view_count),
        "size": str(paste.size),
    }
    if paste.expires_at is not None:
        data["expires_at"] = str(to_millis(paste.expires_at))
    if paste.duration_seconds is not None:
        data["duration"] = str(paste.duration_seconds)
    if paste.max_views is not None:
        data["max_views"] = str(paste.max_views)
        data["remaining_views"] = str(paste.remaining_views)
    return data


def _from_hash(data: Dict[str, str]) -> Paste:
    def optional_int(field: str) -> Optional[int]:
        value = data.get(field)
        return int(value) if value not in (None, "") else None

    expires_at = optional_int("expires_at")
    return Paste(
        token=data["token"],
        title=data.get("title", "Untitled"),
        content=data["content"],
        language=data.get("language", "auto"),
        created_at=from_millis(int(data["created_at"])),
        expires_at=from_millis(expires_at) if expires_at is not None else None,
        duration_seconds=optional_int("duration"),
        max_views=optional_int("max_views"),
        remaining_views=optional_int("remaining_views"),
        is_public=data.get("is_public") == "1",
        view_count=int(data.get("views", 0)),
    )


def _pairs(flat: List[str]) -> Dict[str, str]:
    return dict(zip(flat[0::2], flat[1::2]))


class RedisPasteStore(PasteStore):
    """Paste storage on Redis. Survives process restarts."""

    def __init__(self, redis: Redis, prefix: str = "pasteburn"):
        self.redis = redis
        self.prefix = prefix
        self.index_key = f"{prefix}:index"
        self.expiry_key = f"{prefix}:expiry"
        self.public_key = f"{prefix}:public"
        self.bytes_key = f"{prefix}:bytes"
        # Public pastes that expire, scored by expiry
        self.public_expiry_key = f"{prefix}:public-expiry"
        self.total_key = f"{prefix}:total"
        self._insert = redis.register_script(_INSERT)
        self._decrement = redis.register_script(_DECREMENT)
        self._consume = redis.register_script(_CONSUME)
        self._renew = redis.register_script(_RENEW)
        self._sweep = redis.register_script(_SWEEP)
        self._delete = redis.register_script(_DROP + "return drop(KEYS[1], ARGV[1])")

    def key(self, token: str) -> str:
        return f"{self.prefix}:paste:{token}"

    def _keys(self, token: str) -> List[str]:
        return [
            self.key(token),
            self.index_key,
            self.expiry_key,
            self.public_key,
            self.bytes_key,
            self.public_expiry_key,
        ]

    def ping(self) -> bool:
        """Check if database connection is alive."""
        try:
            self.redis.ping()
            return True
        except RedisError as e:
            logger.error(f"Health check failed: {e}")
        return False

    @_guard
    def insert(self, paste, max_pastes=None, max_total_length=None):
        data = _to_hash(paste)
        args: List[Any] = [
            paste.token,
            data["created_at"],
            data.get("expires_at", ""),
            data["is_public"],
            paste.size,
            "" if max_pastes is None else max_pastes,
            "" if max_total_length is None else max_total_length,
        ]
        for field, value in data.items():
            args.extend((field, value))
        result = int(self._insert(keys=self._keys(paste.token) + [self.total_key], args=args))
        if result == -1:
            raise ConflictError(paste.token)
        if result == -2:
            raise StorageFullError()
        return result

    @_guard
    def exists(self, token):
        return bool(self.redis.exists(self.key(token)))

    @_guard
    def get(self, token):
        data = self.redis.hgetall(self.key(token))
        if not data:
            return None
        return _from_hash(data)

    @_guard
    def decrement_remaining_views(self, token):
        left = int(self._decrement(keys=self._keys(token), args=[token]))
        return None if left < 0 else left

    @_guard
    def consume_view(self, token, now):
        reply = self._consume(keys=self._keys(token), args=[token, to_millis(now)])
        status = Status(int(reply[0]))
        if status is not Status.OK:
            return ViewOutcome(status)
        return ViewOutcome(status, _from_hash(_pairs(reply[1:])))

    @_guard
    def renew(self, token, now, duration_seconds, policy="reset"):
        reply = self._renew(
            keys=self._keys(token),
            args=[token, to_millis(now), duration_seconds * 1000, policy],
        )
        status = Status(int(reply[0]))
        if status is not Status.OK:
            return RenewOutcome(status)
        return RenewOutcome(status, from_millis(int(reply[1])))

    @_guard
    def delete(self, token):
        return bool(self._delete(keys=self._keys(token), args=[token]))

    @_guard
    def delete_expired(self, now, limit=None):
        # Burned pastes are dropped inside the consuming script, so only the
        # expiry index can hold stale rows.
        return int(
            self._sweep(
                keys=self._keys(""),
                args=[f"{self.prefix}:paste:", to_millis(now), limit or 0],
            )
        )

    @_guard
    def list_public(self, limit, offset, now):
        tokens = self.redis.zrevrange(self.public_key, offset, offset + limit - 1)
        if not tokens:
            return []
        pipe = self.redis.pipeline(transaction=False)
        for token in tokens:
            pipe.hgetall(self.key(token))
        pastes = [_from_hash(data) for data in pipe.execute() if data]
        return [paste for paste in pastes if paste.is_live(now)]

    @_guard
    def count_public(self, now):
        pipe = self.redis.pipeline(transaction=True)
        pipe.zcard(self.public_key)
        pipe.zcount(self.public_expiry_key, "-inf", to_millis(now))
        total, expired = pipe.execute()
        return max(int(total) - int(expired), 0)

    @_guard
    def count_live(self, now):
        pipe = self.redis.pipeline(transaction=True)
        pipe.zcard(self.index_key)
        pipe.zcount(self.expiry_key, "-inf", to_millis(now))
        total, expired = pipe.execute()
        return max(int(total) - int(expired), 0)

    @_guard
    def count_total(self):
        return int(self.redis.get(self.total_key) or 0)


def connect_store(url: str, prefix: str = "pasteburn") -> PasteStore:
    """Initialize Redis connection, fallback to in-memory store."""
    try:
        logger.info(f"Attempting to connect to Redis: {url[:30]}...")
        redis = Redis.from_url(url, decode_responses=True)
        redis.ping()
        logger.info("Redis connected successfully")
        return RedisPasteStore(redis, prefix=prefix)
    except Exception as e:
        # Connection failures and malformed URLs both land here
        logger.error(f"Error connecting to Redis: {type(e).__name__}: {e}")
        logger.warning("Using in-memory fallback for development. Data will NOT persist across restarts.")
        store = InMemoryPasteStore()
        store.using_fallback = True
        return store
