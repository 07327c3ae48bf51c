"""User-facing reply texts."""

from collections.abc import Sequence

from .models import ErrorKind, StateError


def help_text(group_size: int) -> str:
    """Usage summary for /start."""
    return "\n".join(
        [
            f"Hi! I split bills for a group of {group_size}, "
            "and each expense can have its own participants:",
            "/start - this help",
            f"/names A,B,... - set the {group_size} member names (comma separated)",
            "/names - show the current members",
            "/add <Payer> <Amount> [A,B,...|all] [note] - quick form",
            "/add <Payer> - <Amount> - <A,B,...|all> - <note> - explicit form",
            "/split - show who pays whom (netted), posted to the group if configured",
            "/clear - wipe the current expenses",
            "/getchatid - show this chat's ID",
            "/send - post the last result to the group (if configured)",
            "Shared ledger: when GROUP_CHAT_ID is set, commands in private chats "
            "also write to the group's ledger.",
        ]
    )


ADD_USAGE = (
    "Usage: /add <Payer> - <Amount> - <A,B,...> - <note>\n"
    "Or: /add <Payer> <Amount> [A,B,...] [note]"
)

CLEARED = "Data cleared."
NO_RESULT_YET = "No result yet. Use /split first."
NO_GROUP_CONFIGURED = "GROUP_CHAT_ID is not configured, posting to this chat."
ANNOUNCED = "Posted the result to the group."
INTERNAL_ERROR = "Something went wrong while handling that command."
PONG = "pong ✔️"


def members(names: Sequence[str]) -> str:
    return f"Current members: {', '.join(names)}"


def members_updated(names: Sequence[str]) -> str:
    return f"Members updated: {', '.join(names)}"


def expense_recorded(payer: str, amount: str, participants: Sequence[str], note: str) -> str:
    suffix = f" ({note})" if note else ""
    return f"Recorded: {payer} paid {amount} for [{', '.join(participants)}]{suffix}"


def settlement_broadcast(rendered: str) -> str:
    return f"Settlement result:\n\n{rendered}"


def broadcast_confirmed(group_chat_id: str) -> str:
    return f"Sent the result to the group ({group_chat_id})."


def broadcast_failed(group_chat_id: str, reason: str) -> str:
    return (
        f"Could not post to GROUP_CHAT_ID={group_chat_id}. Error: {reason}.\n"
        "Check that: 1) the bot has been added to the group, 2) the ID is right "
        "(try the -100 prefix for supergroups), 3) the bot is not blocked."
    )


def chat_id(value: str) -> str:
    return f"Chat ID: {value}"


def state_error(error: StateError) -> str:
    """Describe a rejected session operation to the user."""
    if error.kind is ErrorKind.INVALID_ROSTER_SIZE:
        return f"Please enter exactly {error.expected} names, e.g. /names An,Binh,Chi,Dung"
    if error.kind is ErrorKind.DUPLICATE_MEMBER:
        return f"Member names must be distinct: {error.value} appears more than once."
    if error.kind is ErrorKind.UNKNOWN_MEMBER:
        return (
            f"Name not in the group: {error.value}. "
            f"Valid names: {', '.join(error.valid)}. Use /names to view or update."
        )
    return "Invalid amount. Example: 125000"
