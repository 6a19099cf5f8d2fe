"""
Cash movements in and out of the account.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CashFlowType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class CashFlowTransaction:
    """A single deposit or withdrawal."""
    type: CashFlowType
    amount: float  # Always positive; direction comes from type
    timestamp: datetime
    id: Optional[int] = None

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == CashFlowType.DEPOSIT else -self.amount
