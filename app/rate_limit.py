"""
Rate limiting configuration using slowapi.

Three tiers:
  • strict  – 10/min (admin operations – court creation, manual sweep)
  • booking – 30/min (game create / join / leave / cancel / update)
  • default – 60/min (everything else)

The limiter keys on client IP by default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

# Named rate strings for use in @limiter.limit() decorators
STRICT = "10/minute"     # admin writes
BOOKING = "30/minute"    # game writes
