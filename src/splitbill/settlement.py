"""Settlement engine: turns an expense log into net pairwise transfers."""

import logging
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import InvariantViolation
from .models import Expense, Transfer
from .money import format_currency

logger = logging.getLogger(__name__)

NO_EXPENSES = "No expenses yet."


def split_share(amount: int, participant_count: int) -> int:
    """
    Compute one participant's share of an expense.

    Rounds half away from zero to a whole unit, per expense. The rounding
    error is not carried over to other expenses.

    Raises:
        InvariantViolation: If there are no participants
    """
    if participant_count <= 0:
        raise InvariantViolation("Expense reached settlement with no participants")
    share = Decimal(amount) / Decimal(participant_count)
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def effective_participants(expense: Expense, members: Sequence[str]) -> list[str]:
    """Participants of an expense, defaulting to the whole roster."""
    return list(expense.participants) if expense.participants else list(members)


def accumulate_debts(
    members: Sequence[str], items: Sequence[Expense]
) -> dict[str, dict[str, int]]:
    """
    Build the directed debt table ``debts[debtor][creditor]``.

    The payer never owes themselves, so their own share is simply absorbed.
    Insertion order follows the expense log, which keeps later iteration
    deterministic.
    """
    debts: dict[str, dict[str, int]] = {}
    for expense in items:
        participants = effective_participants(expense, members)
        share = split_share(expense.amount, len(participants))
        if share <= 0:
            continue
        for participant in participants:
            if participant == expense.payer:
                continue
            owed = debts.setdefault(participant, {})
            owed[expense.payer] = owed.get(expense.payer, 0) + share
    return debts


def compute_transfers(
    members: Sequence[str], items: Sequence[Expense]
) -> list[Transfer]:
    """
    Compute the net transfers that settle every recorded expense.

    Steps:
    1. Accumulate directed debts per (debtor, creditor) pair
    2. Net each pair against its reverse; emit the difference in
       whichever direction it is positive
    3. Zero both cells so the pair is resolved exactly once
    4. Merge any repeated (from, to) pairs

    Args:
        members: Group roster, used when an expense has no participant list
        items: Expense log

    Returns:
        Transfers with strictly positive amounts; empty if nothing is owed
    """
    debts = accumulate_debts(members, items)

    transfers: list[tuple[str, str, int]] = []
    for debtor in list(debts):
        owed = debts[debtor]
        for creditor in list(owed):
            reverse = debts.get(creditor, {})
            net = owed[creditor] - reverse.get(debtor, 0)
            if net > 0:
                transfers.append((debtor, creditor, net))
            elif net < 0:
                transfers.append((creditor, debtor, -net))
            # both cells are settled now; the reverse visit must see zeros
            owed[creditor] = 0
            if debtor in reverse:
                reverse[debtor] = 0

    merged: dict[tuple[str, str], int] = {}
    for debtor, creditor, amount in transfers:
        merged[(debtor, creditor)] = merged.get((debtor, creditor), 0) + amount

    result = [
        Transfer(from_member=debtor, to_member=creditor, amount=amount)
        for (debtor, creditor), amount in merged.items()
    ]
    logger.debug(f"Computed {len(result)} transfers from {len(items)} expenses")
    return result


def net_balances(members: Sequence[str], items: Sequence[Expense]) -> dict[str, int]:
    """
    Net position of every member from the rounded expense shares.

    Positive means the member is owed money, negative means they owe.
    """
    balances = {member: 0 for member in members}
    for debtor, owed in accumulate_debts(members, items).items():
        for creditor, amount in owed.items():
            balances[debtor] = balances.get(debtor, 0) - amount
            balances[creditor] = balances.get(creditor, 0) + amount
    return balances


def render_transfers(
    transfers: Sequence[Transfer], symbol: str = "฿", decimals: int = 0
) -> str:
    """Render transfers one per line, or the empty-ledger sentinel."""
    if not transfers:
        return NO_EXPENSES
    return "\n".join(
        f"{t.from_member} → {t.to_member}: {format_currency(t.amount, symbol, decimals)}"
        for t in transfers
    )


def settle(
    members: Sequence[str],
    items: Sequence[Expense],
    symbol: str = "฿",
    decimals: int = 0,
) -> tuple[list[Transfer], str]:
    """Compute and render the settlement in one step."""
    transfers = compute_transfers(members, items)
    return transfers, render_transfers(transfers, symbol, decimals)
