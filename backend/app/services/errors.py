"""
Sync error taxonomy.

Every failure a sync or read flow reports to its caller carries the HTTP
status it maps to. Idempotent replays are not errors and never raise.
"""


class SyncError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingFieldsError(SyncError):
    status_code = 400

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(fields)}")


class ChainUnavailableError(SyncError):
    status_code = 503

    def __init__(self):
        super().__init__("Web3 provider not ready")


class InvalidTransactionHashError(SyncError):
    status_code = 400

    def __init__(self, transaction_hash: str):
        super().__init__(f"Invalid transaction hash format: {transaction_hash!r}")


class TransactionNotFoundError(SyncError):
    status_code = 404

    def __init__(self, transaction_hash: str):
        super().__init__(f"Transaction {transaction_hash} not found on chain")


class TransactionRevertedError(SyncError):
    status_code = 400

    def __init__(self, transaction_hash: str):
        super().__init__(f"Transaction {transaction_hash} failed on chain")


class EventNotFoundError(SyncError):
    status_code = 400

    def __init__(self, event_name: str, token_id: int):
        super().__init__(
            f"Transaction does not contain valid {event_name} event for token {token_id}"
        )


class ItemNotFoundError(SyncError):
    status_code = 404

    def __init__(self, token_id: int, where: str = "in DB"):
        super().__init__(f"Item {token_id} not found {where}")


class ItemAlreadySoldError(SyncError):
    status_code = 409

    def __init__(self, token_id: int):
        super().__init__(f"Item {token_id} is already sold")


class PriceChangedError(SyncError):
    status_code = 409

    def __init__(self, token_id: int, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Price of item {token_id} has changed ({expected} -> {actual} ETH). "
            "Please refresh and try again."
        )
