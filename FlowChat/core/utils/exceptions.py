"""
Exception hierarchy for FlowChat.

NotFoundError and ParseError are treated alike by the sync layer: an absent
or unreadable remote document reads as "empty".
"""


class FlowChatError(Exception):
    """Base exception for FlowChat errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ValidationError(FlowChatError):
    """Input rejected before any state change."""
    pass


class InvalidTitleError(ValidationError):
    """Conversation title outside [A-Za-z0-9_/]."""

    def __init__(self, title: str):
        super().__init__(
            "Invalid title. Use A-Z, a-z, 0-9, _, / only.",
            {"title": title},
        )
        self.title = title


class NotFoundError(FlowChatError):
    """Key or conversation absent."""
    pass


class TransportError(FlowChatError):
    """Network or HTTP failure talking to the blob store."""

    def __init__(self, message: str, status: int = None, details: dict = None):
        super().__init__(message, details)
        self.status = status


class ParseError(FlowChatError):
    """Stored or received document is not well-formed."""
    pass
