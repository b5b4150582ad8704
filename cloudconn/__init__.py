"""Message protocol, control-message handling and configuration helpers for a cloud connector."""

__version__ = "0.1.0"