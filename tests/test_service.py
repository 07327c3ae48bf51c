"""Tests for the LedgerService command handler and the Dispatcher."""

from unittest.mock import MagicMock, call

import pytest

from splitbill import messages
from splitbill.commands import (
    Announce,
    ClearLedger,
    ComputeSettlement,
    GetIdentifier,
    SetMembers,
    ShowMembers,
    parse_command,
)
from splitbill.config import Settings
from splitbill.dispatcher import Dispatcher
from splitbill.exceptions import DeliveryError
from splitbill.models import Expense, Session
from splitbill.service import LedgerService
from splitbill.settlement import NO_EXPENSES
from splitbill.store import InMemorySessionStore

ROSTER = ["A", "B", "C", "D"]
GROUP = "-100200"


def make_settings(**overrides):
    """Create settings without reading the environment file."""
    return Settings(_env_file=None, telegram_bot_token="test_token", **overrides)


@pytest.fixture
def store():
    return InMemorySessionStore(lambda: list(ROSTER))


@pytest.fixture
def service(store):
    """A service with no group chat configured."""
    return LedgerService(make_settings(default_roster=ROSTER), store)


@pytest.fixture
def shared_service(store):
    """A service in shared-ledger mode."""
    return LedgerService(make_settings(default_roster=ROSTER, group_chat_id=GROUP), store)


def run(service, chat_id, text):
    """Parse and handle a chat message, returning reply texts."""
    return [reply.text for reply in service.handle(chat_id, parse_command(text))]


class TestHelp:
    """The /start help text."""

    def test_uses_group_size(self, store):
        settings = make_settings(group_size=3, default_roster=["A", "B", "C"])
        service = LedgerService(settings, store)

        text = run(service, "1", "/start")[0]

        assert "group of 3" in text
        assert "set the 3 member names" in text
        assert "group of 4" not in text


class TestLedgerKey:
    """Session key derivation."""

    def test_per_chat_by_default(self, service):
        assert service.ledger_key("42") == "42"

    def test_shared_ledger_overrides(self, shared_service):
        assert shared_service.ledger_key("42") == GROUP

    def test_shared_ledger_across_chats(self, shared_service, store):
        run(shared_service, "private-1", "/add A 100 A,B")
        replies = run(shared_service, "private-2", "/split")

        assert replies[0] == "B → A: ฿50"
        assert store.get("private-1") is None


class TestMembers:
    """Roster commands."""

    def test_show_members_creates_session(self, service, store):
        replies = service.handle("1", ShowMembers())

        assert replies[0].text == "Current members: A, B, C, D"
        assert store.get("1") is not None

    def test_set_members(self, service, store):
        run(service, "1", "/add A 100")

        replies = service.handle("1", SetMembers(names=["W", "X", "Y", "Z"]))

        assert replies[0].text == "Members updated: W, X, Y, Z"
        session = store.get("1")
        assert session.members == ["W", "X", "Y", "Z"]
        assert session.items == []

    def test_wrong_count_leaves_state(self, service, store):
        run(service, "1", "/add A 100")

        replies = run(service, "1", "/names A,B,C")

        assert "exactly 4 names" in replies[0]
        assert store.get("1").members == ROSTER
        assert len(store.get("1").items) == 1

    def test_duplicate_name(self, service):
        replies = run(service, "1", "/names A,B,B,C")

        assert "B appears more than once" in replies[0]


class TestAddExpense:
    """Recording expenses through commands."""

    def test_recorded_reply(self, service):
        replies = run(service, "1", "/add A 1,250 A,B dinner")

        assert replies == ["Recorded: A paid ฿1,250 for [A, B] (dinner)"]

    def test_dash_form(self, service, store):
        replies = run(service, "1", "/add C - 300 - all - taxi")

        assert replies == ["Recorded: C paid ฿300 for [A, B, C, D] (taxi)"]
        assert store.get("1").items[0].participants == ROSTER

    def test_loose_token_becomes_note(self, service, store):
        replies = run(service, "1", "/add A 100 coffee and cake")

        assert replies == ["Recorded: A paid ฿100 for [A, B, C, D] (coffee and cake)"]

    def test_loose_partial_list_becomes_note(self, service, store):
        run(service, "1", "/add A 100 A,Z lunch")

        expense = store.get("1").items[0]
        assert expense.participants == ROSTER
        assert expense.note == "A,Z lunch"

    def test_dash_unknown_participant(self, service, store):
        replies = run(service, "1", "/add A - 100 - A,Z - lunch")

        assert replies[0].startswith("Name not in the group: Z.")
        assert store.get("1").items == []

    def test_dash_empty_list(self, service, store):
        replies = run(service, "1", "/add A - 100 - [] - lunch")

        assert replies[0].startswith("Name not in the group: [].")
        assert store.get("1").items == []

    def test_unknown_payer(self, service, store):
        replies = run(service, "1", "/add Z 100")

        assert replies[0] == (
            "Name not in the group: Z. Valid names: A, B, C, D. "
            "Use /names to view or update."
        )
        assert store.get("1").items == []

    @pytest.mark.parametrize("amount", ["abc", "12.5", "0"])
    def test_invalid_amount(self, service, store, amount):
        replies = run(service, "1", f"/add A {amount}")

        assert replies == ["Invalid amount. Example: 125000"]
        assert store.get("1").items == []

    def test_usage(self, service):
        assert run(service, "1", "/add A") == [messages.ADD_USAGE]

    @pytest.mark.parametrize("text", ["/add A -100", "/add A -100 A,B lunch"])
    def test_negative_amount(self, service, store, text):
        replies = run(service, "1", text)

        assert replies == ["Invalid amount. Example: 125000"]
        assert store.get("1").items == []

    def test_hyphenated_note_stays_quick_form(self, service, store):
        run(service, "1", "/add A 100 A,B take-away")

        expense = store.get("1").items[0]
        assert expense.participants == ["A", "B"]
        assert expense.note == "take-away"


class TestSettlement:
    """The /split command."""

    def test_empty_ledger(self, service, store):
        replies = service.handle("1", ComputeSettlement())

        assert [r.text for r in replies] == [NO_EXPENSES]
        assert store.get("1").last_result == NO_EXPENSES

    def test_result_cached(self, service, store):
        run(service, "1", "/add A 100 A,B")

        replies = run(service, "1", "/split")

        assert replies == ["B → A: ฿50"]
        assert store.get("1").last_result == "B → A: ฿50"

    def test_no_broadcast_without_group(self, service):
        run(service, "1", "/add A 100 A,B")

        replies = service.handle("1", ComputeSettlement())

        assert len(replies) == 1
        assert not replies[0].broadcast

    def test_broadcast_to_group(self, shared_service):
        run(shared_service, "1", "/add A 100 A,B")

        replies = shared_service.handle("1", ComputeSettlement())

        assert len(replies) == 2
        broadcast = replies[1]
        assert broadcast.chat_id == GROUP
        assert broadcast.broadcast
        assert broadcast.text == "Settlement result:\n\nB → A: ฿50"
        assert broadcast.origin_chat_id == "1"
        assert broadcast.confirmation == messages.broadcast_confirmed(GROUP)

    def test_no_confirmation_inside_group(self, shared_service):
        run(shared_service, GROUP, "/add A 100 A,B")

        replies = shared_service.handle(GROUP, ComputeSettlement())

        assert replies[1].confirmation is None

    def test_no_broadcast_when_nothing_owed(self, shared_service):
        replies = shared_service.handle("1", ComputeSettlement())

        assert len(replies) == 1

    def test_invariant_violation_reported(self, service, store):
        broken = Session(members=[], items=[Expense(payer="A", amount=10)])
        store.put("1", broken)

        replies = service.handle("1", ComputeSettlement())

        assert [r.text for r in replies] == [messages.INTERNAL_ERROR]
        assert store.get("1").last_result is None


class TestClearAndAnnounce:
    """The /clear and /send commands."""

    def test_clear(self, service, store):
        run(service, "1", "/names W,X,Y,Z")
        run(service, "1", "/add W 100")
        run(service, "1", "/split")

        replies = service.handle("1", ClearLedger())

        assert replies[0].text == messages.CLEARED
        session = store.get("1")
        assert session.members == ["W", "X", "Y", "Z"]
        assert session.items == []
        assert session.last_result is None

    def test_announce_without_result(self, service):
        replies = service.handle("1", Announce())

        assert [r.text for r in replies] == [messages.NO_RESULT_YET]

    def test_announce_without_group_posts_here(self, service):
        run(service, "1", "/add A 100 A,B")
        run(service, "1", "/split")

        replies = service.handle("1", Announce())

        assert replies[0].text == messages.NO_GROUP_CONFIGURED
        assert replies[1].chat_id == "1"
        assert replies[1].text == "Settlement result:\n\nB → A: ฿50"
        assert replies[1].confirmation is None

    def test_announce_to_group(self, shared_service):
        run(shared_service, "1", "/add A 100 A,B")
        run(shared_service, "1", "/split")

        replies = shared_service.handle("1", Announce())

        assert len(replies) == 1
        assert replies[0].chat_id == GROUP
        assert replies[0].confirmation == messages.ANNOUNCED

    def test_announce_uses_cached_result(self, service):
        """Expenses added after /split do not change what /send posts."""
        run(service, "1", "/add A 100 A,B")
        run(service, "1", "/split")
        run(service, "1", "/add C 400")

        replies = service.handle("1", Announce())

        assert replies[-1].text == "Settlement result:\n\nB → A: ฿50"

    def test_get_identifier(self, service, store):
        replies = service.handle("77", GetIdentifier())

        assert replies[0].text == "Chat ID: 77"
        assert store.get("77") is None


class TestDispatcher:
    """Delivering replies through the message sink."""

    @pytest.fixture
    def sink(self):
        return MagicMock()

    @pytest.fixture
    def dispatcher(self, shared_service, sink):
        return Dispatcher(shared_service, sink)

    def test_non_command_ignored(self, dispatcher, sink):
        assert dispatcher.handle_text("1", "hello there") == []
        sink.send.assert_not_called()

    def test_reply_sent(self, dispatcher, sink):
        dispatcher.handle_text("1", "/getchatid")

        sink.send.assert_called_once_with("1", "Chat ID: 1")

    def test_broadcast_and_confirmation(self, dispatcher, sink):
        dispatcher.handle_text("1", "/add A 100 A,B")
        sink.reset_mock()

        dispatcher.handle_text("1", "/split")

        assert sink.send.call_args_list == [
            call("1", "B → A: ฿50"),
            call(GROUP, "Settlement result:\n\nB → A: ฿50"),
            call("1", messages.broadcast_confirmed(GROUP)),
        ]

    def test_broadcast_failure_reported_to_origin(self, dispatcher, sink, store):
        def send(chat_id, text):
            if chat_id == GROUP:
                raise DeliveryError(chat_id, "Forbidden: bot was kicked")

        sink.send.side_effect = send
        dispatcher.handle_text("1", "/add A 100 A,B")

        dispatcher.handle_text("1", "/split")

        assert sink.send.call_args_list[-1] == call(
            "1", messages.broadcast_failed(GROUP, "Forbidden: bot was kicked")
        )
        assert store.get(GROUP).last_result == "B → A: ฿50"

    def test_direct_failure_returned(self, shared_service, sink):
        sink.send.side_effect = DeliveryError("1", "chat not found")
        dispatcher = Dispatcher(shared_service, sink)

        replies = shared_service.handle("1", GetIdentifier())
        failed = dispatcher.deliver(replies)

        assert failed == replies
        sink.send.assert_called_once()

    def test_handle_update(self, dispatcher, sink):
        update = {
            "update_id": 5,
            "edited_message": {"chat": {"id": 1234}, "text": "/ping"},
        }

        dispatcher.handle_update(update)

        sink.send.assert_called_once_with("1234", messages.PONG)

    def test_edited_add_not_recorded_twice(self, dispatcher, sink, store):
        dispatcher.handle_update(
            {"update_id": 7, "message": {"chat": {"id": 1}, "text": "/add A 100 A,B"}}
        )
        sink.reset_mock()

        replies = dispatcher.handle_update(
            {
                "update_id": 8,
                "edited_message": {"chat": {"id": 1}, "text": "/add A 120 A,B"},
            }
        )

        assert replies == []
        sink.send.assert_not_called()
        items = store.get(GROUP).items
        assert [(e.payer, e.amount) for e in items] == [("A", 100)]

    def test_update_without_text(self, dispatcher, sink):
        update = {"update_id": 6, "message": {"chat": {"id": 1}, "sticker": {}}}

        assert dispatcher.handle_update(update) == []
        sink.send.assert_not_called()
