"""
邮件发送频率限制

按小写邮箱地址计数，固定窗口内最多发送 max_attempts 封。
默认存储在进程内存中，进程重启后清零；多实例部署时可切换到 Django cache (如 Redis)。
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Dict, Optional, Tuple

from django.core.cache import caches

from .conf import auth_settings


logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float  # epoch 秒


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: Optional[int] = None
    reset_time: Optional[datetime] = None


class MemoryRateLimitStore:
    """进程内存储，线程安全"""

    def __init__(self):
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            record = self._records.get(key)
            return RateLimitRecord(record.count, record.reset_time) if record else None

    def increment(self, key: str, now: float, window_seconds: float) -> RateLimitRecord:
        with self._lock:
            record = self._records.get(key)
            if record is None or now > record.reset_time:
                record = RateLimitRecord(count=1, reset_time=now + window_seconds)
                self._records[key] = record
            else:
                record.count += 1
            return RateLimitRecord(record.count, record.reset_time)

    def delete(self, key: str):
        with self._lock:
            self._records.pop(key, None)

    def delete_expired(self, now: float) -> int:
        with self._lock:
            expired = [key for key, record in self._records.items() if now > record.reset_time]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._records)


class CacheRateLimitStore:
    """
    基于 Django cache 的存储，配合 Redis 可在多进程间共享计数

    计数与窗口重置时间分两个键保存，计数通过 cache.add / cache.incr 原子递增。
    """

    KEY_PREFIX = 'ydtb_auth:email_rate'

    def __init__(self, alias: str = 'default'):
        self.alias = alias

    @property
    def cache(self):
        return caches[self.alias]

    def _keys(self, key: str) -> Tuple[str, str]:
        return f"{self.KEY_PREFIX}:{key}:count", f"{self.KEY_PREFIX}:{key}:reset"

    def get(self, key: str) -> Optional[RateLimitRecord]:
        count_key, reset_key = self._keys(key)
        data = self.cache.get_many([count_key, reset_key])
        if count_key not in data or reset_key not in data:
            return None
        return RateLimitRecord(count=data[count_key], reset_time=data[reset_key])

    def _start_window(self, count_key: str, reset_key: str, now: float, window_seconds: float) -> RateLimitRecord:
        ttl = max(1, math.ceil(window_seconds))
        reset_time = now + window_seconds
        self.cache.set(count_key, 1, ttl)
        self.cache.set(reset_key, reset_time, ttl)
        return RateLimitRecord(count=1, reset_time=reset_time)

    def increment(self, key: str, now: float, window_seconds: float) -> RateLimitRecord:
        count_key, reset_key = self._keys(key)
        ttl = max(1, math.ceil(window_seconds))

        reset_time = self.cache.get(reset_key)
        if reset_time is not None and now > reset_time:
            return self._start_window(count_key, reset_key, now, window_seconds)

        if self.cache.add(count_key, 1, ttl):
            reset_time = now + window_seconds
            self.cache.add(reset_key, reset_time, ttl)
            return RateLimitRecord(count=1, reset_time=self.cache.get(reset_key, reset_time))

        try:
            count = self.cache.incr(count_key)
        except ValueError:
            # 计数键在 add 与 incr 之间过期
            return self._start_window(count_key, reset_key, now, window_seconds)

        if reset_time is None:
            reset_time = now + window_seconds
            self.cache.add(reset_key, reset_time, ttl)
            reset_time = self.cache.get(reset_key, reset_time)
        return RateLimitRecord(count=count, reset_time=reset_time)

    def delete(self, key: str):
        self.cache.delete_many(list(self._keys(key)))

    def delete_expired(self, now: float) -> int:
        # 过期由 cache TTL 负责
        return 0


class EmailRateLimiter:
    """
    邮件发送频率限制器

    Args:
        window_seconds: 窗口长度，默认15分钟
        max_attempts: 窗口内最大发送次数，默认3次
        store: 存储后端，默认进程内存储
        clock: 返回当前 epoch 秒的函数，便于测试
        cleanup_interval: 自动清理过期记录的间隔，默认5分钟
    """

    def __init__(
        self,
        window_seconds: float = 15 * 60,
        max_attempts: int = 3,
        store=None,
        clock: Callable[[], float] = time.time,
        cleanup_interval: float = 5 * 60,
    ):
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self.store = store if store is not None else MemoryRateLimitStore()
        self.clock = clock
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = clock()
        self._cleanup_lock = threading.Lock()

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def can_send_email(self, email: str) -> RateLimitResult:
        """检查是否还可以向该邮箱发送邮件"""
        self._maybe_cleanup()
        now = self.clock()
        key = self._key(email)
        record = self.store.get(key)

        if record is None:
            return RateLimitResult(allowed=True, remaining=self.max_attempts - 1)

        if now > record.reset_time:
            # 窗口已过期，重置计数
            self.store.delete(key)
            return RateLimitResult(allowed=True, remaining=self.max_attempts - 1)

        if record.count >= self.max_attempts:
            return RateLimitResult(
                allowed=False,
                reset_time=datetime.fromtimestamp(record.reset_time, tz=dt_timezone.utc),
            )

        return RateLimitResult(allowed=True, remaining=self.max_attempts - (record.count + 1))

    def record_email_sent(self, email: str):
        """记录一次发送"""
        self._maybe_cleanup()
        self.store.increment(self._key(email), self.clock(), self.window_seconds)

    def cleanup(self) -> int:
        """清理过期记录"""
        removed = self.store.delete_expired(self.clock())
        if removed:
            logger.debug(f"Email rate limiter removed {removed} expired entries")
        return removed

    def reset(self, email: str):
        """清除某个邮箱的计数"""
        self.store.delete(self._key(email))

    def minutes_until_reset(self, result: RateLimitResult) -> int:
        """距离窗口重置的分钟数 (向上取整)"""
        if result.reset_time is None:
            return 0
        seconds = result.reset_time.timestamp() - self.clock()
        return max(0, math.ceil(seconds / 60))

    def _maybe_cleanup(self):
        now = self.clock()
        if now - self._last_cleanup < self.cleanup_interval:
            return
        with self._cleanup_lock:
            if now - self._last_cleanup < self.cleanup_interval:
                return
            self._last_cleanup = now
        self.cleanup()


_limiter: Optional[EmailRateLimiter] = None
_limiter_lock = threading.Lock()


def build_rate_limiter() -> EmailRateLimiter:
    """根据配置构建限制器"""
    if auth_settings.EMAIL_RATE_LIMIT_STORE == 'cache':
        store = CacheRateLimitStore(auth_settings.EMAIL_RATE_LIMIT_CACHE_ALIAS)
    else:
        store = MemoryRateLimitStore()

    return EmailRateLimiter(
        window_seconds=auth_settings.EMAIL_RATE_LIMIT_WINDOW,
        max_attempts=auth_settings.EMAIL_RATE_LIMIT_MAX_ATTEMPTS,
        store=store,
        cleanup_interval=auth_settings.EMAIL_RATE_LIMIT_CLEANUP_INTERVAL,
    )


def email_rate_limiter() -> EmailRateLimiter:
    """获取进程级单例"""
    global _limiter
    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                _limiter = build_rate_limiter()
    return _limiter


def reset_email_rate_limiter():
    """丢弃当前单例，下次调用时按最新配置重建"""
    global _limiter
    with _limiter_lock:
        _limiter = None
