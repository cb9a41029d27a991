"""Request throttling using slowapi (per client address, independent of plan limits)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
