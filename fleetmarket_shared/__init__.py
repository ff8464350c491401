from .env import env_bool, env_float, env_int, env_list
from .phone_utils import digits_only, is_valid_phone, mask_phone
from .rate_limit import RedisRateLimiter, SlidingWindowLimiter

__all__ = [
    "env_bool",
    "env_float",
    "env_int",
    "env_list",
    "digits_only",
    "is_valid_phone",
    "mask_phone",
    "SlidingWindowLimiter",
    "RedisRateLimiter",
]
