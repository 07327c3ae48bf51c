"""Delivery of service replies through a message sink."""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from . import messages
from .commands import Ping, parse_command
from .exceptions import DeliveryError
from .models import Reply
from .service import LedgerService

logger = logging.getLogger(__name__)


class MessageSink(Protocol):
    """Anything that can post text to a chat.

    Implementations raise DeliveryError when the message cannot be sent.
    """

    def send(self, chat_id: str, text: str) -> None: ...


class Dispatcher:
    """Routes chat messages to the service and delivers the replies."""

    def __init__(self, service: LedgerService, sink: MessageSink):
        """Initialize the dispatcher."""
        self.service = service
        self.sink = sink

    def handle_text(self, chat_id: str, text: str) -> list[Reply]:
        """
        Handle one chat message.

        Args:
            chat_id: Chat the message came from
            text: Raw message text

        Returns:
            Replies produced by the service (empty for non-commands)
        """
        command = parse_command(text)
        if command is None:
            logger.debug(f"Ignoring non-command message in chat {chat_id}")
            return []

        replies = self.service.handle(chat_id, command)
        self.deliver(replies)
        return replies

    def handle_update(self, update: dict[str, Any]) -> list[Reply]:
        """
        Handle a Telegram update carrying a new message.

        Edited messages are not commands: re-running an edited /add would
        record the expense twice. Only an edited /ping is answered.
        """
        edited = "message" not in update
        message = update.get("message") or update.get("edited_message") or {}
        chat = message.get("chat") or {}
        text = message.get("text")
        if "id" not in chat or not text:
            logger.debug(f"Skipping update {update.get('update_id')} without text")
            return []

        if edited and not isinstance(parse_command(text), Ping):
            logger.debug(f"Ignoring edited message in chat {chat['id']}")
            return []
        return self.handle_text(str(chat["id"]), text)

    def deliver(self, replies: Sequence[Reply]) -> list[Reply]:
        """
        Send replies in order.

        A failed broadcast is reported back to the chat that asked for it;
        any other failure is logged. Delivery problems never undo the
        state change that produced the reply.

        Returns:
            Replies that could not be delivered
        """
        failed = []
        for reply in replies:
            try:
                self.sink.send(reply.chat_id, reply.text)
            except DeliveryError as e:
                failed.append(reply)
                if reply.broadcast and reply.origin_chat_id:
                    logger.warning(f"Broadcast to {reply.chat_id} failed: {e.reason}")
                    self._notify(
                        reply.origin_chat_id,
                        messages.broadcast_failed(reply.chat_id, e.reason),
                    )
                else:
                    logger.error(f"Reply to {reply.chat_id} failed: {e.reason}")
                continue

            if reply.confirmation and reply.origin_chat_id:
                self._notify(reply.origin_chat_id, reply.confirmation)
        return failed

    def _notify(self, chat_id: str, text: str) -> None:
        try:
            self.sink.send(chat_id, text)
        except DeliveryError as e:
            logger.error(f"Notice to {chat_id} failed: {e.reason}")
