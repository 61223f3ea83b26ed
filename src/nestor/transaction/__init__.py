"""
Nested transaction emulation over a single native transaction.
"""

from .manager import TransactionManager
from .savepoint import SAVEPOINT_PREFIX, SavepointEmulator
from .state import TransactionState

__all__ = [
    "TransactionManager",
    "TransactionState",
    "SavepointEmulator",
    "SAVEPOINT_PREFIX",
]
