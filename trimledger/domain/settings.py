"""
Account settings owned outside the ledgers and read by the valuation layer.
"""
from dataclasses import dataclass

from ..config import (
    DEFAULT_STARTING_ACCOUNT_SIZE,
    DEFAULT_RISK_PERCENT,
    DEFAULT_MAX_POSITION_PERCENT,
)


@dataclass
class AccountSettings:
    starting_account_size: float = DEFAULT_STARTING_ACCOUNT_SIZE
    default_risk_percent: float = DEFAULT_RISK_PERCENT
    default_max_position_percent: float = DEFAULT_MAX_POSITION_PERCENT
    dynamic_account_enabled: bool = True
