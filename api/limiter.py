"""
api/limiter.py -- Shared slowapi rate limiter for the identity endpoints.

Every route that sends an email or checks an OTP code is limited per client
IP with OTP_RATE_LIMIT. A single shared Limiter instance means all of those
routes count against the same in-memory store; api/main.py attaches it to
app.state where SlowAPIMiddleware looks for it.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

OTP_RATE_LIMIT = get_settings().otp_rate_limit

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
