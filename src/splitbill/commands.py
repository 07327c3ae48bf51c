"""Chat text parsing into command intents.

The parser only tokenizes. It never looks at session state, so roster
checks and amount validation happen in the service.
"""

import re
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

# ============================================================================
# Command Intents
# ============================================================================


class ShowHelp(BaseModel):
    kind: Literal["help"] = "help"


class ShowMembers(BaseModel):
    kind: Literal["show_members"] = "show_members"


class SetMembers(BaseModel):
    kind: Literal["set_members"] = "set_members"
    names: list[str]


class AddExpense(BaseModel):
    """A tokenized /add command.

    ``participants`` is None when the whole roster shares the cost.
    ``participants_token`` is the raw list text. In the space-separated form
    (``loose``) that token is only a guess at a participant list, and the
    service treats it as the start of the note if it does not name members.
    """

    kind: Literal["add_expense"] = "add_expense"
    payer: str
    amount: str  # raw text, parsed by money.parse_amount
    participants: list[str] | None = None
    note: str = ""
    participants_token: str | None = None
    loose: bool = False


class AddUsage(BaseModel):
    """An /add command with too few arguments."""

    kind: Literal["add_usage"] = "add_usage"


class ComputeSettlement(BaseModel):
    kind: Literal["compute_settlement"] = "compute_settlement"


class ClearLedger(BaseModel):
    kind: Literal["clear_ledger"] = "clear_ledger"


class GetIdentifier(BaseModel):
    kind: Literal["get_identifier"] = "get_identifier"


class Announce(BaseModel):
    kind: Literal["announce"] = "announce"


class Ping(BaseModel):
    kind: Literal["ping"] = "ping"


Command = Annotated[
    ShowHelp
    | ShowMembers
    | SetMembers
    | AddExpense
    | AddUsage
    | ComputeSettlement
    | ClearLedger
    | GetIdentifier
    | Announce
    | Ping,
    Field(discriminator="kind"),
]

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)

# ============================================================================
# Parsing
# ============================================================================

_COMMAND_RE = re.compile(r"^/(?P<name>[a-z]+)(?:@\w+)?(?:\s+(?P<args>.*))?$", re.I | re.S)

_ALIASES = {
    "start": "help",
    "help": "help",
    "names": "names",
    "add": "add",
    "spent": "add",
    "chia": "split",
    "split": "split",
    "clear": "clear",
    "reset": "clear",
    "getchatid": "getchatid",
    "send": "send",
    "announce": "send",
    "ping": "ping",
}


def split_names(text: str) -> list[str]:
    """Split a comma-separated name list, dropping blanks and brackets."""
    stripped = text.strip()
    if stripped.startswith("["):
        stripped = stripped[1:]
    if stripped.endswith("]"):
        stripped = stripped[:-1]
    return [part.strip() for part in stripped.split(",") if part.strip()]


def _is_all(token: str) -> bool:
    return token.strip().strip("[]").lower() == "all"


def _parse_add(args: str) -> Command:
    dash_parts = [part.strip() for part in re.split(r"\s+-\s+", args) if part.strip()]
    if len(dash_parts) >= 2:
        participants = None
        token = dash_parts[2] if len(dash_parts) >= 3 else None
        if token and not _is_all(token):
            participants = split_names(token)
        return AddExpense(
            payer=dash_parts[0],
            amount=dash_parts[1],
            participants=participants,
            note=dash_parts[3] if len(dash_parts) >= 4 else "",
            participants_token=token,
        )

    tokens = args.split()
    if len(tokens) < 2:
        return AddUsage()

    payer, amount, rest = tokens[0], tokens[1], tokens[2:]
    if not rest:
        return AddExpense(payer=payer, amount=amount)
    if _is_all(rest[0]):
        return AddExpense(payer=payer, amount=amount, note=" ".join(rest[1:]))

    return AddExpense(
        payer=payer,
        amount=amount,
        participants=split_names(rest[0]),
        note=" ".join(rest[1:]),
        participants_token=rest[0],
        loose=True,
    )


def parse_command(text: str) -> Command | None:
    """
    Parse a chat message into a command intent.

    Args:
        text: Raw message text

    Returns:
        The command intent, or None if the text is not a known command
    """
    match = _COMMAND_RE.match(text.strip())
    if not match:
        return None

    name = _ALIASES.get(match.group("name").lower())
    args = (match.group("args") or "").strip()

    if name == "help":
        return ShowHelp()
    if name == "names":
        if not args:
            return ShowMembers()
        return SetMembers(names=split_names(args))
    if name == "add":
        if not args:
            return AddUsage()
        return _parse_add(args)
    if name == "split":
        return ComputeSettlement()
    if name == "clear":
        return ClearLedger()
    if name == "getchatid":
        return GetIdentifier()
    if name == "send":
        return Announce()
    if name == "ping":
        return Ping()
    return None
