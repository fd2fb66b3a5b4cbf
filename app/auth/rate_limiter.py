from app.config import settings
from app.redis_client import get_redis_client


class RateLimiter:
    """Fixed-window failure counter in Redis, one key per (scope, identifier)"""

    def __init__(self, scope: str, max_attempts: int, window_minutes: int):
        self.redis = get_redis_client()
        self.scope = scope
        self.max_attempts = max_attempts
        self.window_minutes = window_minutes

    def _get_key(self, identifier: str) -> str:
        return f"rate_limit:{self.scope}:{identifier}"

    def is_blocked(self, identifier: str) -> bool:
        """Check if identifier is currently blocked"""
        attempts = self.redis.get(self._get_key(identifier))
        if attempts is None:
            return False
        return int(attempts) >= self.max_attempts

    def record_failed_attempt(self, identifier: str) -> int:
        """Record a failed attempt and return current count"""
        key = self._get_key(identifier)
        pipe = self.redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_minutes * 60)
        result = pipe.execute()
        return result[0]

    def reset(self, identifier: str):
        self.redis.delete(self._get_key(identifier))

    def get_attempts(self, identifier: str) -> int:
        attempts = self.redis.get(self._get_key(identifier))
        return int(attempts) if attempts else 0


rate_limiter = RateLimiter("login", settings.rate_limit_failed_logins, settings.rate_limit_window_minutes)

# Guessing coupon codes at the coupon stage
coupon_rate_limiter = RateLimiter("coupon", settings.rate_limit_failed_coupons, settings.rate_limit_window_minutes)
