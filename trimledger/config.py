"""
Constants and environment overrides.
"""
import os
from pathlib import Path

# Contract multipliers applied to all P&L math
OPTION_MULTIPLIER = 100
STOCK_MULTIPLIER = 1

DEFAULT_STARTING_ACCOUNT_SIZE = 10000.0
DEFAULT_RISK_PERCENT = 1.0
DEFAULT_MAX_POSITION_PERCENT = 100.0

# Target used when a trade has none: entry + 5R
DEFAULT_TARGET_R = 5.0

# Relative tolerance for totalRealizedPnL == sum(trim pnl)
PNL_REL_TOL = 1e-9

# Trailing debounce for write-back (seconds)
SAVE_DELAY_SECONDS = float(os.environ.get("TRIMLEDGER_SAVE_DELAY_MS", "300")) / 1000.0

DATA_DIR = Path(os.environ.get("TRIMLEDGER_DATA_DIR", Path.home() / ".trimledger"))

# Storage keys
JOURNAL_KEY = "journal"
CASH_FLOW_KEY = "cash_flow"
SETTINGS_KEY = "settings"
