"""Custom exceptions for splitbill."""


class SplitBillError(Exception):
    """Base exception for all splitbill errors."""

    pass


class ConfigurationError(SplitBillError):
    """Raised when configuration is invalid or missing."""

    pass


class InvariantViolation(SplitBillError):
    """Raised when an internal contract is broken.

    This signals a bug in the validation layer (e.g. an expense with no
    participants reaching the settlement engine), never a user mistake.
    """

    pass


class APIError(SplitBillError):
    """Base class for API-related errors."""

    pass


class TelegramAPIError(APIError):
    """Raised when a Telegram Bot API request fails."""

    def __init__(self, method: str, description: str, status_code: int | None = None):
        self.method = method
        self.description = description
        self.status_code = status_code
        super().__init__(f"Telegram {method} failed: {description}")


class DeliveryError(SplitBillError):
    """Raised when a message could not be delivered to a chat."""

    def __init__(self, chat_id: str, reason: str):
        self.chat_id = chat_id
        self.reason = reason
        super().__init__(f"Could not deliver message to {chat_id}: {reason}")
