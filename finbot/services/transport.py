"""
Chat Transport

The orchestrator talks to the user only through ChatTransport.send_message.
A real deployment plugs in a messaging-platform client; the local console
and the tests use RecordingTransport, which keeps every outbound message.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field


class Button(BaseModel):
    """Inline button: label shown to the user, token sent back on press."""

    label: str
    token: str


class OutboundMessage(BaseModel):
    chat_id: str
    text: str
    buttons: list[Button] = Field(default_factory=list)


class ChatTransport(ABC):
    """Abstract interface for sending messages to a chat."""

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        text: str,
        buttons: Optional[list[Button]] = None,
    ) -> None:
        """Send a message, optionally with inline buttons."""
        pass


class RecordingTransport(ChatTransport):
    """Keeps outbound messages in memory, in order."""

    def __init__(self):
        self.sent: list[OutboundMessage] = []

    async def send_message(
        self,
        chat_id: str,
        text: str,
        buttons: Optional[list[Button]] = None,
    ) -> None:
        self.sent.append(OutboundMessage(chat_id=chat_id, text=text, buttons=buttons or []))

    def messages_for(self, chat_id: str) -> list[OutboundMessage]:
        return [m for m in self.sent if m.chat_id == chat_id]

    def drain(self, chat_id: str) -> list[OutboundMessage]:
        """Messages sent to one chat, removed so each is handed out once."""
        drained = self.messages_for(chat_id)
        self.sent = [m for m in self.sent if m.chat_id != chat_id]
        return drained

    @property
    def last(self) -> Optional[OutboundMessage]:
        return self.sent[-1] if self.sent else None
