"""
Time-Weighted Staking Ledger

This module provides:
- A staking pool paying rewards per fully elapsed reward period
- Owner-only rate, period and reserve management
- Carried rewards across re-stakes
- All-or-nothing operations over an external asset transfer service
- Configurable withdraw and unstake-shortfall policies
"""

from .models import (
    OwnerActionKind,
    WithdrawPolicy,
    UnstakePolicy,
    PoolConfig,
    StakerRecord,
    OwnerActionEvent,
    PayoutEvent,
)
from .rewards import compute_reward
from .service import (
    StakingLedger,
    StakingLedgerError,
    InvalidConfigurationError,
    UnauthorizedError,
    OutsideOperatingWindowError,
    NoActiveStakeError,
    InsufficientReserveError,
    TransferFailedError,
    RollbackFailedError,
)

__all__ = [
    "OwnerActionKind",
    "WithdrawPolicy",
    "UnstakePolicy",
    "PoolConfig",
    "StakerRecord",
    "OwnerActionEvent",
    "PayoutEvent",
    "compute_reward",
    "StakingLedger",
    "StakingLedgerError",
    "InvalidConfigurationError",
    "UnauthorizedError",
    "OutsideOperatingWindowError",
    "NoActiveStakeError",
    "InsufficientReserveError",
    "TransferFailedError",
    "RollbackFailedError",
]
