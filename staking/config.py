import logging
import os
from typing import Optional
from pydantic import BaseModel, Field

from .clock import Clock
from .models import WithdrawPolicy, UnstakePolicy
from .service import StakingLedger, InvalidConfigurationError, DEFAULT_POOL_ADDRESS
from .transfers import InMemoryAssetTransferService

DEFAULT_SUPPLY = 100 * 10**18
DEFAULT_WINDOW_SECONDS = 30 * 86400


def configure_logging(level_name: Optional[str] = None) -> None:
    level_name = (level_name or os.getenv("STAKING_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root.setLevel(level)


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}")


class StakingSettings(BaseModel):
    owner: str = "owner"
    staking_asset: str = "TKA"
    reward_asset: str = "TKB"
    reward_period_seconds: int = 86400
    start_timestamp: Optional[int] = Field(None, description="Defaults to process start time")
    end_timestamp: Optional[int] = Field(None, description="Defaults to start + 30 days")
    percent_per_period: int = 10
    pool_address: str = DEFAULT_POOL_ADDRESS
    withdraw_policy: WithdrawPolicy = WithdrawPolicy.PROTECT_PRINCIPAL
    unstake_policy: UnstakePolicy = UnstakePolicy.INDEPENDENT
    initial_supply: int = DEFAULT_SUPPLY

    @classmethod
    def from_env(cls) -> "StakingSettings":
        values = {
            "owner": os.getenv("STAKING_OWNER"),
            "staking_asset": os.getenv("STAKING_STAKING_ASSET"),
            "reward_asset": os.getenv("STAKING_REWARD_ASSET"),
            "reward_period_seconds": _int_env("STAKING_REWARD_PERIOD_SECONDS", None),
            "start_timestamp": _int_env("STAKING_START_TIMESTAMP", None),
            "end_timestamp": _int_env("STAKING_END_TIMESTAMP", None),
            "percent_per_period": _int_env("STAKING_PERCENT_PER_PERIOD", None),
            "pool_address": os.getenv("STAKING_POOL_ADDRESS"),
            "withdraw_policy": os.getenv("STAKING_WITHDRAW_POLICY"),
            "unstake_policy": os.getenv("STAKING_UNSTAKE_POLICY"),
            "initial_supply": _int_env("STAKING_INITIAL_SUPPLY", None),
        }
        try:
            return cls(**{k: v for k, v in values.items() if v is not None})
        except ValueError as e:
            raise InvalidConfigurationError(str(e))

    def build_ledger(self, clock: Clock, transfers=None) -> StakingLedger:
        """Deploy a ledger and, unless given one, an in-memory asset book
        with both assets' supply minted to the owner."""
        start = self.start_timestamp if self.start_timestamp is not None else clock.now()
        end = self.end_timestamp if self.end_timestamp is not None else start + DEFAULT_WINDOW_SECONDS
        if transfers is None:
            transfers = InMemoryAssetTransferService(initial_supply={
                self.staking_asset: (self.owner, self.initial_supply),
                self.reward_asset: (self.owner, self.initial_supply),
            })
        return StakingLedger(
            owner=self.owner,
            staking_asset=self.staking_asset,
            reward_asset=self.reward_asset,
            reward_period_seconds=self.reward_period_seconds,
            start_timestamp=start,
            end_timestamp=end,
            percent_per_period=self.percent_per_period,
            transfers=transfers,
            clock=clock,
            pool_address=self.pool_address,
            withdraw_policy=self.withdraw_policy,
            unstake_policy=self.unstake_policy,
        )
