from dataclasses import dataclass


@dataclass
class TransactionState:
    """Nesting bookkeeping for one connection"""

    nesting_level: int = 0
    rollback_only: bool = False
    savepoint_mode: bool = False

    def reset(self) -> None:
        """Forget any open transaction, keeping the nesting mode"""
        self.nesting_level = 0
        self.rollback_only = False
