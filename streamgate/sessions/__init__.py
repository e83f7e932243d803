"""Device session limiting."""

from streamgate.sessions.errors import AccountInactiveError, AtCapacityError
from streamgate.sessions.limiter import DeviceSessionLimiter

__all__ = ["AccountInactiveError", "AtCapacityError", "DeviceSessionLimiter"]
