import logging
import threading
from functools import wraps
from typing import Optional

from .clock import Clock, SystemClock
from .models import (
    OwnerActionKind,
    WithdrawPolicy,
    UnstakePolicy,
    PoolConfig,
    StakerRecord,
    OwnerActionEvent,
    PayoutEvent,
    LedgerEvent,
    StakeResult,
    UnstakeResult,
    WithdrawResult,
)
from .rewards import compute_reward
from .transfers import AssetTransferService

logger = logging.getLogger(__name__)

DEFAULT_POOL_ADDRESS = "staking-pool"


class StakingLedgerError(Exception):
    pass


class InvalidConfigurationError(StakingLedgerError):
    pass


class UnauthorizedError(StakingLedgerError):
    pass


class OutsideOperatingWindowError(StakingLedgerError):
    pass


class NoActiveStakeError(StakingLedgerError):
    pass


class InsufficientReserveError(StakingLedgerError):
    pass


class TransferFailedError(StakingLedgerError):
    pass


class RollbackFailedError(TransferFailedError):
    pass


def require_int(name: str, value, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


def serialized(method):
    """Run a ledger method under the ledger lock, one call at a time."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class InMemoryStorage:
    def __init__(self):
        self.stakers: dict[str, StakerRecord] = {}
        self.events: list[LedgerEvent] = []


class _TransferBatch:
    """Outbound transfers of one operation, reversed if a later one fails."""

    def __init__(self, transfers: AssetTransferService):
        self.transfers = transfers
        self.completed: list[tuple[str, str, str, int]] = []

    def move(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        if not self.transfers.transfer(asset, sender, recipient, amount):
            raise TransferFailedError(
                f"Transfer of {amount} {asset} from {sender} to {recipient} was declined"
            )
        self.completed.append((asset, sender, recipient, amount))

    def rollback(self) -> bool:
        reversed_all = True
        for asset, sender, recipient, amount in reversed(self.completed):
            if not self.transfers.transfer(asset, recipient, sender, amount):
                logger.error(
                    "Could not reverse transfer of %s %s from %s to %s",
                    amount, asset, sender, recipient,
                )
                reversed_all = False
        self.completed.clear()
        return reversed_all


class StakingLedger:
    def __init__(
        self,
        owner: str,
        staking_asset: str,
        reward_asset: str,
        reward_period_seconds: int,
        start_timestamp: int,
        end_timestamp: int,
        percent_per_period: int,
        transfers: AssetTransferService,
        clock: Optional[Clock] = None,
        pool_address: str = DEFAULT_POOL_ADDRESS,
        withdraw_policy: WithdrawPolicy = WithdrawPolicy.PROTECT_PRINCIPAL,
        unstake_policy: UnstakePolicy = UnstakePolicy.INDEPENDENT,
        storage: Optional[InMemoryStorage] = None,
    ):
        if not staking_asset or not reward_asset:
            raise InvalidConfigurationError("Asset identifiers must not be empty")
        if staking_asset == reward_asset:
            raise InvalidConfigurationError("Staking and reward assets must differ")
        if not owner or not pool_address:
            raise InvalidConfigurationError("Owner and pool addresses must not be empty")
        if owner == pool_address:
            raise InvalidConfigurationError("Owner cannot be the pool address")
        require_int("Reward period", reward_period_seconds, 1)
        require_int("Start timestamp", start_timestamp, 0)
        require_int("End timestamp", end_timestamp, 0)
        if start_timestamp >= end_timestamp:
            raise InvalidConfigurationError(
                f"Start timestamp {start_timestamp} must precede end timestamp {end_timestamp}"
            )
        require_int("Percent per period", percent_per_period, 0)

        self.owner = owner
        self.staking_asset = staking_asset
        self.reward_asset = reward_asset
        self.reward_period_seconds = reward_period_seconds
        self.start_timestamp = start_timestamp
        self.end_timestamp = end_timestamp
        self.percent_per_period = percent_per_period
        self.pool_address = pool_address
        self.withdraw_policy = WithdrawPolicy(withdraw_policy)
        self.unstake_policy = UnstakePolicy(unstake_policy)

        self.transfers = transfers
        self.clock = clock or SystemClock()
        self.storage = storage or InMemoryStorage()
        self._lock = threading.RLock()

        self.total_staked = 0
        self.total_staked_in = 0
        self.total_staked_out = 0
        self.total_carried_reward = 0

        logger.info(
            "Staking pool %s deployed by %s: stake %s, reward %s, period %ss, rate %s/1000, window [%s, %s]",
            pool_address, owner, staking_asset, reward_asset, reward_period_seconds,
            percent_per_period, start_timestamp, end_timestamp,
        )

    # Owner operations

    @serialized
    def set_percent_per_period(self, caller: str, value: int) -> OwnerActionEvent:
        self._require_owner(caller, "set_percent_per_period")
        require_int("Percent per period", value, 0)
        self.percent_per_period = value
        logger.info("Owner %s set percent per period to %s", caller, value)
        return self._emit(OwnerActionEvent(action_kind=OwnerActionKind.PERCENT_PER_PERIOD, new_value=value))

    @serialized
    def set_reward_period(self, caller: str, value: int) -> OwnerActionEvent:
        self._require_owner(caller, "set_reward_period")
        require_int("Reward period", value, 1)
        self.reward_period_seconds = value
        logger.info("Owner %s set reward period to %ss", caller, value)
        return self._emit(OwnerActionEvent(action_kind=OwnerActionKind.REWARD_PERIOD, new_value=value))

    @serialized
    def withdraw(self, caller: str, amount: int, asset: str) -> WithdrawResult:
        self._require_owner(caller, "withdraw")
        require_int("Withdraw amount", amount, 1)
        available = self.withdrawable(asset)
        if amount > available:
            logger.warning("Owner withdraw of %s %s refused: %s withdrawable", amount, asset, available)
            raise InsufficientReserveError(
                f"Pool can release {available} {asset}, requested {amount}"
            )
        _TransferBatch(self.transfers).move(asset, self.pool_address, caller, amount)
        logger.info("Owner %s withdrew %s %s", caller, amount, asset)
        return WithdrawResult(asset=asset, amount=amount, recipient=caller)

    @serialized
    def withdrawable(self, asset: str) -> int:
        """How much of `asset` the owner may take out under the withdraw policy."""
        held = self.transfers.balance_of(asset, self.pool_address)
        if self.withdraw_policy == WithdrawPolicy.UNRESTRICTED:
            return held
        owed = 0
        if asset == self.staking_asset:
            owed = self.total_staked
        elif asset == self.reward_asset:
            owed = self.total_carried_reward
        return max(held - owed, 0)

    # Staker operations

    @serialized
    def fund_reserve(self, caller: str, amount: int) -> int:
        self._require_not_pool(caller, "fund_reserve")
        require_int("Funding amount", amount, 1)
        _TransferBatch(self.transfers).move(self.reward_asset, caller, self.pool_address, amount)
        reserve = self.reserve_balance()
        logger.info("%s funded reserve with %s %s, reserve now %s", caller, amount, self.reward_asset, reserve)
        return reserve

    @serialized
    def stake_tokens(self, caller: str, amount: int) -> StakeResult:
        self._require_not_pool(caller, "stake_tokens")
        require_int("Stake amount", amount, 1)
        now = self.clock.now()
        if not self.start_timestamp <= now <= self.end_timestamp:
            logger.warning("Stake by %s at %s outside window [%s, %s]",
                           caller, now, self.start_timestamp, self.end_timestamp)
            raise OutsideOperatingWindowError(
                f"Staking is open from {self.start_timestamp} to {self.end_timestamp}, now is {now}"
            )

        record = self._get_record(caller)
        carried = self._interval_reward(record, now) if record.is_active() else 0

        _TransferBatch(self.transfers).move(self.staking_asset, caller, self.pool_address, amount)

        updated = StakerRecord(
            amount=record.amount + amount,
            time_stamp=now,
            reward=record.reward + carried,
        )
        self.storage.stakers[caller] = updated
        self.total_staked += amount
        self.total_staked_in += amount
        self.total_carried_reward += carried

        logger.info("%s staked %s %s (principal %s, carried reward %s)",
                    caller, amount, self.staking_asset, updated.amount, updated.reward)
        return StakeResult(staker=caller, record=updated.model_copy(), carried_reward=carried)

    @serialized
    def claim_reward(self, caller: str) -> PayoutEvent:
        self._require_not_pool(caller, "claim_reward")
        record = self._get_record(caller)
        if not record.is_active() and record.reward == 0:
            raise NoActiveStakeError(f"{caller} has no active stake")

        now = self.clock.now()
        total = self._interval_reward(record, now) + record.reward
        if total > 0:
            self._check_reserve(total)
            _TransferBatch(self.transfers).move(self.reward_asset, self.pool_address, caller, total)

        self.total_carried_reward -= record.reward
        self._store(caller, StakerRecord(
            amount=record.amount,
            time_stamp=now if record.is_active() else 0,
            reward=0,
        ))

        logger.info("%s claimed %s %s at %s", caller, total, self.reward_asset, now)
        return self._emit(PayoutEvent(staker=caller, time_stamp=now, amount=total))

    @serialized
    def unstake_tokens(self, caller: str) -> UnstakeResult:
        self._require_not_pool(caller, "unstake_tokens")
        record = self._get_record(caller)
        if not record.is_active():
            raise NoActiveStakeError(f"{caller} has no active stake")

        now = self.clock.now()
        owed = self._interval_reward(record, now) + record.reward
        reserve = self.reserve_balance()
        if owed > reserve and self.unstake_policy == UnstakePolicy.ATOMIC:
            logger.warning("Unstake by %s refused: reward %s exceeds reserve %s", caller, owed, reserve)
            raise InsufficientReserveError(f"Reserve holds {reserve}, reward owed is {owed}")

        batch = _TransferBatch(self.transfers)
        batch.move(self.staking_asset, self.pool_address, caller, record.amount)

        paid = 0
        if 0 < owed <= reserve:
            try:
                batch.move(self.reward_asset, self.pool_address, caller, owed)
                paid = owed
            except TransferFailedError:
                if self.unstake_policy == UnstakePolicy.ATOMIC:
                    if batch.rollback():
                        raise
                    # principal already left the pool, so the record must show it
                    self._close_stake(caller, record, paid=0, owed=owed)
                    raise RollbackFailedError(
                        f"Reward transfer to {caller} declined and principal return could not be reversed; "
                        f"{owed} {self.reward_asset} left outstanding"
                    )
                logger.warning("Reward transfer to %s declined, keeping %s outstanding", caller, owed)
        return self._close_stake(caller, record, paid=paid, owed=owed)

    def _close_stake(self, caller: str, record: StakerRecord, paid: int, owed: int) -> UnstakeResult:
        outstanding = owed - paid
        if outstanding:
            logger.warning("%s unstaked with %s %s reward outstanding", caller, outstanding, self.reward_asset)

        self.total_staked -= record.amount
        self.total_staked_out += record.amount
        self.total_carried_reward += outstanding - record.reward
        self._store(caller, StakerRecord(amount=0, time_stamp=0, reward=outstanding))

        logger.info("%s unstaked %s %s and received %s %s",
                    caller, record.amount, self.staking_asset, paid, self.reward_asset)
        return UnstakeResult(
            staker=caller,
            principal_returned=record.amount,
            reward_paid=paid,
            reward_outstanding=outstanding,
        )

    # Reads

    @serialized
    def stakers(self, address: str) -> StakerRecord:
        return self._get_record(address).model_copy()

    @serialized
    def pending_reward(self, address: str) -> int:
        record = self._get_record(address)
        return self._interval_reward(record, self.clock.now()) + record.reward

    @serialized
    def reserve_balance(self) -> int:
        return self.transfers.balance_of(self.reward_asset, self.pool_address)

    @serialized
    def pool_config(self) -> PoolConfig:
        return PoolConfig(
            staking_asset=self.staking_asset,
            reward_asset=self.reward_asset,
            reward_period_seconds=self.reward_period_seconds,
            start_timestamp=self.start_timestamp,
            end_timestamp=self.end_timestamp,
            percent_per_period=self.percent_per_period,
            owner=self.owner,
            pool_address=self.pool_address,
            withdraw_policy=self.withdraw_policy,
            unstake_policy=self.unstake_policy,
        )

    @property
    def events(self) -> list[LedgerEvent]:
        return list(self.storage.events)

    def _require_owner(self, caller: str, action: str) -> None:
        if caller != self.owner:
            logger.warning("Unauthorized %s attempt by %s", action, caller)
            raise UnauthorizedError(f"Only the owner may call {action}")

    def _require_not_pool(self, caller: str, action: str) -> None:
        if caller == self.pool_address:
            logger.warning("Rejected %s with the pool address as caller", action)
            raise UnauthorizedError(f"The pool address cannot call {action}")

    def _check_reserve(self, amount: int) -> None:
        reserve = self.reserve_balance()
        if amount > reserve:
            logger.warning("Payout of %s refused: reserve holds %s", amount, reserve)
            raise InsufficientReserveError(f"Reserve holds {reserve}, payout requires {amount}")

    def _interval_reward(self, record: StakerRecord, now: int) -> int:
        if not record.is_active():
            return 0
        # accrual stops at the end of the operating window
        stop_mark = min(now, self.end_timestamp)
        return compute_reward(
            record.time_stamp, stop_mark, record.amount,
            self.reward_period_seconds, self.percent_per_period,
        )

    def _get_record(self, address: str) -> StakerRecord:
        record = self.storage.stakers.get(address)
        return record if record is not None else StakerRecord()

    def _store(self, address: str, record: StakerRecord) -> None:
        if record.amount == 0 and record.reward == 0:
            self.storage.stakers.pop(address, None)
        else:
            self.storage.stakers[address] = record

    def _emit(self, event: LedgerEvent) -> LedgerEvent:
        self.storage.events.append(event)
        return event
