import uuid
from contextlib import contextmanager

import redis

from storefront.domain.errors import OrderBusy
from storefront.utils.retry import redis_retry, wait_until_true
from storefront.utils.settings import REDIS_URL, ORDER_LOCK_TTL_SECONDS, ORDER_LOCK_WAIT_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete runs as one Lua script, so nothing can run between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Per-order lock: the single serialization point for verify, transition
    and reaper expiry of one order.
    - acquire: SET key token NX EX ttl
    - release: Lua compare-and-delete, only the owner's token frees the key
    - the TTL frees locks of crashed workers
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        ttl: int = ORDER_LOCK_TTL_SECONDS,
        wait: float = ORDER_LOCK_WAIT_SECONDS,
    ):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl
        self.wait = wait

    @staticmethod
    def _key(order_id: str) -> str:
        return f"order:{order_id}:lock"

    @redis_retry()
    def acquire_order_lock(self, order_id: str, token: str, ttl: int | None = None) -> bool:
        key = self._key(order_id)
        #SET order:<id>:lock "<token>" NX EX 30
        acquired = self.redis.set(
            name=key,
            value=token,
            nx=True,
            ex=ttl or self.ttl,
        )
        return bool(acquired)

    @redis_retry()
    def release_order_lock(self, order_id: str, token: str) -> bool:
        key = self._key(order_id)
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @contextmanager
    def order_lock(self, order_id: str):
        token = uuid.uuid4().hex

        @wait_until_true(max_wait=self.wait)
        def _acquire():
            return self.acquire_order_lock(order_id, token)

        if not _acquire():
            logger.warning(f"Could not lock order {order_id} within {self.wait}s")
            raise OrderBusy(order_id)

        try:
            yield token
        finally:
            if not self.release_order_lock(order_id, token):
                # lease ran out while we worked; conditional updates still protected the rows
                logger.warning(f"Lock for order {order_id} expired before release")
