from enum import Enum, IntEnum
from typing import Optional, Union
from pydantic import BaseModel, Field, ConfigDict


class OwnerActionKind(IntEnum):
    PERCENT_PER_PERIOD = 0
    REWARD_PERIOD = 1


class WithdrawPolicy(str, Enum):
    PROTECT_PRINCIPAL = "PROTECT_PRINCIPAL"
    UNRESTRICTED = "UNRESTRICTED"


class UnstakePolicy(str, Enum):
    INDEPENDENT = "INDEPENDENT"
    ATOMIC = "ATOMIC"


class PoolConfig(BaseModel):
    staking_asset: str
    reward_asset: str
    reward_period_seconds: int
    start_timestamp: int
    end_timestamp: int
    percent_per_period: int = Field(..., description="Reward per period in thousandths of principal")
    owner: str
    pool_address: str
    withdraw_policy: WithdrawPolicy = WithdrawPolicy.PROTECT_PRINCIPAL
    unstake_policy: UnstakePolicy = UnstakePolicy.INDEPENDENT

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "staking_asset": "TKA",
            "reward_asset": "TKB",
            "reward_period_seconds": 86400,
            "start_timestamp": 1631489094,
            "end_timestamp": 1631737494,
            "percent_per_period": 10,
            "owner": "0xowner",
            "pool_address": "staking-pool",
        }
    })


class StakerRecord(BaseModel):
    amount: int = 0
    time_stamp: int = 0
    reward: int = 0

    model_config = ConfigDict(from_attributes=True)

    def is_active(self) -> bool:
        return self.amount > 0


class OwnerActionEvent(BaseModel):
    event: str = "OwnerAction"
    action_kind: OwnerActionKind
    new_value: int


class PayoutEvent(BaseModel):
    event: str = "Payout"
    staker: str
    time_stamp: int = Field(..., description="Stop mark used for the paid interval")
    amount: int


LedgerEvent = Union[OwnerActionEvent, PayoutEvent]


class StakeResult(BaseModel):
    staker: str
    record: StakerRecord
    carried_reward: int = 0


class UnstakeResult(BaseModel):
    staker: str
    principal_returned: int
    reward_paid: int
    reward_outstanding: int = 0


class WithdrawResult(BaseModel):
    asset: str
    amount: int
    recipient: str


# HTTP request / response bodies

class ValueRequest(BaseModel):
    value: int


class AmountRequest(BaseModel):
    amount: int = Field(..., description="Amount in the asset's smallest unit")


class WithdrawRequest(BaseModel):
    amount: int
    asset: str


class AssetTransferRequest(BaseModel):
    to: str
    amount: int


class PoolStateResponse(BaseModel):
    config: PoolConfig
    reserve: int
    total_staked: int
    now: int


class BalanceResponse(BaseModel):
    asset: str
    holder: str
    balance: int


class PendingRewardResponse(BaseModel):
    staker: str
    pending_reward: int
    as_of: int


class EventsResponse(BaseModel):
    events: list[LedgerEvent]
    total_count: int


class ClaimResponse(BaseModel):
    payout: PayoutEvent
    message: str
    record: Optional[StakerRecord] = None
