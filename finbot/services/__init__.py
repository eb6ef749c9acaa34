"""Services package."""

from finbot.services.storage import (
    ConnectionError,
    ExpiringCache,
    GoogleSheetsClient,
    GoogleSheetsRowStore,
    InMemoryExpiringCache,
    InMemoryRowStore,
    RowStore,
    StorageError,
)
from finbot.services.transport import (
    Button,
    ChatTransport,
    OutboundMessage,
    RecordingTransport,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "ExpiringCache",
    "GoogleSheetsClient",
    "GoogleSheetsRowStore",
    "InMemoryExpiringCache",
    "InMemoryRowStore",
    "RowStore",
    "StorageError",
    # Chat transport
    "Button",
    "ChatTransport",
    "OutboundMessage",
    "RecordingTransport",
]
