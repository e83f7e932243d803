"""Account registration and lookup."""

from streamgate.accounts.errors import AccountNotFoundError
from streamgate.accounts.service import AccountService

__all__ = ["AccountNotFoundError", "AccountService"]
