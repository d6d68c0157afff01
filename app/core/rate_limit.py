from slowapi import Limiter
from slowapi.util import get_remote_address

# Guards the admin login form; OTP endpoints use the store-backed RateLimiter.
limiter = Limiter(key_func=get_remote_address)
