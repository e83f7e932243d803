"""Device session errors. Both are user-actionable denials, never retried."""

from fastapi import status

from streamgate.platform.errors import AppError


class AtCapacityError(AppError):
    """Account already holds the maximum number of device sessions (403)."""

    def __init__(self, account_id: str, max_devices: int):
        self.account_id = account_id
        self.max_devices = max_devices
        super().__init__(
            code="DEVICE_LIMIT_REACHED",
            message="Maximum device limit reached",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"max_devices": max_devices},
        )


class AccountInactiveError(AppError):
    """Account is not active and may not open a session (403)."""

    def __init__(self, account_id: str, account_status: str):
        self.account_id = account_id
        self.account_status = account_status
        super().__init__(
            code="ACCOUNT_INACTIVE",
            message="Account is not active",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"status": account_status},
        )
