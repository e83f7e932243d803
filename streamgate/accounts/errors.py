from streamgate.platform.errors import NotFoundError


class AccountNotFoundError(NotFoundError):
    """Account id does not exist (404)."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("Account", account_id)
