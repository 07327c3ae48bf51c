"""Session state operations.

Each operation takes a Session and returns either a new Session or a
StateError describing why the input was rejected. The input session is
never modified, so a rejected operation cannot corrupt stored state.
"""

import logging
from collections.abc import Sequence

from .models import ErrorKind, Expense, Session, StateError

logger = logging.getLogger(__name__)

DEFAULT_GROUP_SIZE = 4

SessionResult = Session | StateError


def new_session(roster: Sequence[str]) -> Session:
    """Create an empty session with the given roster."""
    return Session(members=list(roster))


def set_members(
    session: Session, names: Sequence[str], group_size: int = DEFAULT_GROUP_SIZE
) -> SessionResult:
    """
    Replace the roster.

    Clears the expense log, since expenses reference members that may no
    longer exist, and the cached result, which is now stale.

    Args:
        session: Current session
        names: New member names, in roster order
        group_size: Required number of members

    Returns:
        Updated session, or a StateError for a wrong count or a repeated name
    """
    if len(names) != group_size:
        return StateError(
            kind=ErrorKind.INVALID_ROSTER_SIZE,
            value=str(len(names)),
            expected=group_size,
        )

    seen: set[str] = set()
    for name in names:
        if name in seen:
            return StateError(kind=ErrorKind.DUPLICATE_MEMBER, value=name)
        seen.add(name)

    logger.info(f"Roster set to {list(names)} ({len(session.items)} expenses dropped)")
    return session.model_copy(
        update={"members": list(names), "items": [], "last_result": None}
    )


def add_expense(
    session: Session,
    payer: str,
    amount: int,
    participants: Sequence[str] | None = None,
    note: str = "",
) -> SessionResult:
    """
    Append an expense to the log.

    Args:
        session: Current session
        payer: Member who paid
        amount: Amount paid, in whole currency units
        participants: Members sharing the cost; empty or None means everyone
        note: Free-text description

    Returns:
        Updated session, or a StateError naming the first unknown member
        or the invalid amount
    """
    if payer not in session.members:
        return StateError(
            kind=ErrorKind.UNKNOWN_MEMBER, value=payer, valid=list(session.members)
        )

    for name in participants or ():
        if name not in session.members:
            return StateError(
                kind=ErrorKind.UNKNOWN_MEMBER, value=name, valid=list(session.members)
            )

    if amount <= 0:
        return StateError(kind=ErrorKind.INVALID_AMOUNT, value=str(amount))

    expense = Expense(
        payer=payer,
        amount=amount,
        participants=(
            list(dict.fromkeys(participants)) if participants else list(session.members)
        ),
        note=note,
    )
    logger.info(
        f"Recorded expense: {payer} paid {amount} for {expense.participants}"
    )
    return session.model_copy(update={"items": [*session.items, expense]})


def clear(session: Session) -> Session:
    """Empty the expense log and drop the cached result. Keeps the roster."""
    logger.info(f"Cleared {len(session.items)} expenses")
    return session.model_copy(update={"items": [], "last_result": None})


def record_result(session: Session, rendered: str) -> Session:
    """Cache the rendering of the most recent settlement."""
    return session.model_copy(update={"last_result": rendered})
