"""Pydantic domain models for splitbill."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

SCHEMA_VERSION = 1

# ============================================================================
# Ledger Models
# ============================================================================


class Expense(BaseModel):
    """One recorded payment: who paid, how much, and for whom."""

    payer: str
    amount: int = Field(gt=0)  # whole currency units
    participants: list[str] = Field(default_factory=list)  # empty = whole roster
    note: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class Session(BaseModel):
    """Roster and expense log for one conversation (or the shared ledger).

    Session values are treated as immutable: state operations return a
    new copy rather than mutating in place.
    """

    schema_version: int = SCHEMA_VERSION
    members: list[str]
    items: list[Expense] = Field(default_factory=list)
    last_result: str | None = None  # rendering of the most recent settlement


class Transfer(BaseModel):
    """A net payment from a debtor to a creditor."""

    from_member: str
    to_member: str
    amount: int = Field(gt=0)


# ============================================================================
# Validation Results
# ============================================================================


class ErrorKind(str, Enum):
    """Kinds of user-input failure returned by session operations."""

    INVALID_ROSTER_SIZE = "invalid_roster_size"
    DUPLICATE_MEMBER = "duplicate_member"
    UNKNOWN_MEMBER = "unknown_member"
    INVALID_AMOUNT = "invalid_amount"


class StateError(BaseModel):
    """A rejected session operation. The session is left unchanged."""

    kind: ErrorKind
    value: str | None = None  # the offending input, when there is one
    valid: list[str] = Field(default_factory=list)  # roster, for UNKNOWN_MEMBER
    expected: int | None = None  # roster size, for INVALID_ROSTER_SIZE


# ============================================================================
# Outbound Messages
# ============================================================================


class Reply(BaseModel):
    """A message the service wants delivered.

    Broadcasts go to the configured group chat. If one fails, the
    dispatcher tells ``origin_chat_id`` instead of dropping it silently;
    if it succeeds, ``confirmation`` (when set) is sent there.
    """

    chat_id: str
    text: str
    broadcast: bool = False
    origin_chat_id: str | None = None
    confirmation: str | None = None
