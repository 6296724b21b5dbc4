"""Rate limiting global / Global rate limiter.

Utilise slowapi pour limiter les requetes de tarification par IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT_DEFAULT])
