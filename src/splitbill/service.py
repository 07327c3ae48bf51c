"""Command handling service.

Maps a parsed command for a chat onto session operations and the
settlement engine, and returns the replies to deliver. Delivery itself
is the dispatcher's job.
"""

import logging
from collections.abc import Callable

from . import messages
from . import session as ledger
from .commands import (
    AddExpense,
    Command,
    SetMembers,
)
from .config import Settings
from .exceptions import InvariantViolation
from .models import ErrorKind, Reply, Session, StateError
from .money import format_currency, parse_amount
from .settlement import settle
from .store import SessionStore

logger = logging.getLogger(__name__)


class LedgerService:
    """Handles bot commands against per-chat (or shared) ledgers."""

    def __init__(self, settings: Settings, store: SessionStore):
        """Initialize the ledger service."""
        self.settings = settings
        self.store = store
        self._handlers: dict[str, Callable[[str, Command], list[Reply]]] = {
            "help": self._help,
            "show_members": self._show_members,
            "set_members": self._set_members,
            "add_expense": self._add_expense,
            "add_usage": self._add_usage,
            "compute_settlement": self._compute_settlement,
            "clear_ledger": self._clear_ledger,
            "get_identifier": self._get_identifier,
            "announce": self._announce,
            "ping": self._ping,
        }

    def ledger_key(self, chat_id: str) -> str:
        """Session key for a chat: the group chat in shared-ledger mode."""
        return self.settings.group_chat_id or chat_id

    def handle(self, chat_id: str, command: Command) -> list[Reply]:
        """
        Handle one command from a chat.

        Args:
            chat_id: Chat the command came from
            command: Parsed command intent

        Returns:
            Replies to deliver, in order
        """
        logger.debug(f"Handling {command.kind} from chat {chat_id}")
        try:
            return self._handlers[command.kind](chat_id, command)
        except InvariantViolation:
            logger.exception(f"Invariant violated while handling {command.kind}")
            return [Reply(chat_id=chat_id, text=messages.INTERNAL_ERROR)]

    def format_amount(self, amount: int) -> str:
        return format_currency(
            amount, self.settings.currency_symbol, self.settings.currency_decimals
        )

    # ========================================================================
    # Roster commands
    # ========================================================================

    def _help(self, chat_id: str, command: Command) -> list[Reply]:
        text = messages.help_text(self.settings.group_size)
        return [Reply(chat_id=chat_id, text=text)]

    def _show_members(self, chat_id: str, command: Command) -> list[Reply]:
        session = self.store.get_or_create(self.ledger_key(chat_id))
        return [Reply(chat_id=chat_id, text=messages.members(session.members))]

    def _set_members(self, chat_id: str, command: SetMembers) -> list[Reply]:
        with self.store.transaction(self.ledger_key(chat_id)) as handle:
            result = ledger.set_members(
                handle.session, command.names, self.settings.group_size
            )
            if isinstance(result, StateError):
                return [Reply(chat_id=chat_id, text=messages.state_error(result))]
            handle.session = result

        return [Reply(chat_id=chat_id, text=messages.members_updated(result.members))]

    # ========================================================================
    # Expense commands
    # ========================================================================

    def _add_usage(self, chat_id: str, command: Command) -> list[Reply]:
        return [Reply(chat_id=chat_id, text=messages.ADD_USAGE)]

    def _add_expense(self, chat_id: str, command: AddExpense) -> list[Reply]:
        with self.store.transaction(self.ledger_key(chat_id)) as handle:
            result = self._apply_expense(handle.session, command)
            if isinstance(result, StateError):
                logger.info(f"Rejected expense from chat {chat_id}: {result.kind.value}")
                return [Reply(chat_id=chat_id, text=messages.state_error(result))]
            handle.session = result

        expense = result.items[-1]
        text = messages.expense_recorded(
            expense.payer,
            self.format_amount(expense.amount),
            expense.participants,
            expense.note,
        )
        return [Reply(chat_id=chat_id, text=text)]

    def _apply_expense(
        self, session: Session, command: AddExpense
    ) -> Session | StateError:
        """Resolve the participant list and amount, then record the expense."""
        participants = command.participants
        note = command.note

        if participants is not None:
            unknown = [name for name in participants if name not in session.members]
            if command.loose and (unknown or not participants):
                # Not a member list after all: split among everyone, keep it as note
                participants = None
                note = f"{command.participants_token} {note}".strip()
            elif not participants:
                return StateError(
                    kind=ErrorKind.UNKNOWN_MEMBER,
                    value=command.participants_token,
                    valid=list(session.members),
                )

        try:
            amount = parse_amount(command.amount)
        except ValueError:
            return StateError(kind=ErrorKind.INVALID_AMOUNT, value=command.amount)

        return ledger.add_expense(session, command.payer, amount, participants, note)

    def _clear_ledger(self, chat_id: str, command: Command) -> list[Reply]:
        with self.store.transaction(self.ledger_key(chat_id)) as handle:
            handle.session = ledger.clear(handle.session)
        return [Reply(chat_id=chat_id, text=messages.CLEARED)]

    # ========================================================================
    # Settlement commands
    # ========================================================================

    def _compute_settlement(self, chat_id: str, command: Command) -> list[Reply]:
        with self.store.transaction(self.ledger_key(chat_id)) as handle:
            transfers, rendered = settle(
                handle.session.members,
                handle.session.items,
                self.settings.currency_symbol,
                self.settings.currency_decimals,
            )
            handle.session = ledger.record_result(handle.session, rendered)

        logger.info(f"Settled ledger {handle.key}: {len(transfers)} transfers")
        replies = [Reply(chat_id=chat_id, text=rendered)]

        group_chat_id = self.settings.group_chat_id
        if group_chat_id and transfers:
            replies.append(
                Reply(
                    chat_id=group_chat_id,
                    text=messages.settlement_broadcast(rendered),
                    broadcast=True,
                    origin_chat_id=chat_id,
                    confirmation=(
                        messages.broadcast_confirmed(group_chat_id)
                        if group_chat_id != chat_id
                        else None
                    ),
                )
            )
        return replies

    def _announce(self, chat_id: str, command: Command) -> list[Reply]:
        # last_result is whatever /split cached, even if expenses changed since
        session = self.store.get_or_create(self.ledger_key(chat_id))
        if not session.last_result:
            return [Reply(chat_id=chat_id, text=messages.NO_RESULT_YET)]

        replies = []
        target = self.settings.group_chat_id or chat_id
        if not self.settings.group_chat_id:
            replies.append(Reply(chat_id=chat_id, text=messages.NO_GROUP_CONFIGURED))

        replies.append(
            Reply(
                chat_id=target,
                text=messages.settlement_broadcast(session.last_result),
                broadcast=True,
                origin_chat_id=chat_id,
                confirmation=messages.ANNOUNCED if target != chat_id else None,
            )
        )
        return replies

    # ========================================================================
    # Misc commands
    # ========================================================================

    def _get_identifier(self, chat_id: str, command: Command) -> list[Reply]:
        return [Reply(chat_id=chat_id, text=messages.chat_id(chat_id))]

    def _ping(self, chat_id: str, command: Command) -> list[Reply]:
        return [Reply(chat_id=chat_id, text=messages.PONG)]
