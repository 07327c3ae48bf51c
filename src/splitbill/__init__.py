"""splitbill - Track shared expenses in a chat and settle who owes whom."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .models import Expense, Session, StateError, Transfer
from .service import LedgerService
from .settlement import compute_transfers, render_transfers, settle
from .store import InMemorySessionStore, SqliteSessionStore

__all__ = [
    "Settings",
    "load_settings",
    "Expense",
    "Session",
    "StateError",
    "Transfer",
    "LedgerService",
    "compute_transfers",
    "render_transfers",
    "settle",
    "InMemorySessionStore",
    "SqliteSessionStore",
]
