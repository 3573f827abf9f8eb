from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .clock import SystemClock
from .config import StakingSettings, configure_logging
from .models import (
    StakerRecord, StakeResult, UnstakeResult, WithdrawResult, OwnerActionEvent,
    ClaimResponse, PoolStateResponse, BalanceResponse, PendingRewardResponse,
    EventsResponse, ValueRequest, AmountRequest, WithdrawRequest, AssetTransferRequest,
)
from .service import (
    StakingLedger, StakingLedgerError, InvalidConfigurationError, UnauthorizedError,
    OutsideOperatingWindowError, NoActiveStakeError, InsufficientReserveError,
    TransferFailedError, RollbackFailedError,
)

ERROR_STATUS = {
    InvalidConfigurationError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    OutsideOperatingWindowError: status.HTTP_409_CONFLICT,
    NoActiveStakeError: status.HTTP_409_CONFLICT,
    InsufficientReserveError: status.HTTP_409_CONFLICT,
    TransferFailedError: status.HTTP_402_PAYMENT_REQUIRED,
    RollbackFailedError: status.HTTP_502_BAD_GATEWAY,
}


def to_http_error(e: StakingLedgerError) -> HTTPException:
    code = ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(e))


def create_app(ledger: StakingLedger) -> FastAPI:
    app = FastAPI(
        title="Staking Ledger API",
        description="Time-weighted staking pool paying periodic rewards from a funded reserve",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "staking-ledger"}

    @app.get("/pool", response_model=PoolStateResponse, tags=["Pool"])
    def get_pool() -> PoolStateResponse:
        return PoolStateResponse(
            config=ledger.pool_config(),
            reserve=ledger.reserve_balance(),
            total_staked=ledger.total_staked,
            now=ledger.clock.now(),
        )

    @app.put("/pool/percent-per-period", response_model=OwnerActionEvent, tags=["Owner"])
    def set_percent_per_period(request: ValueRequest, x_caller_address: str = Header(...)) -> OwnerActionEvent:
        try:
            return ledger.set_percent_per_period(x_caller_address, request.value)
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.put("/pool/reward-period", response_model=OwnerActionEvent, tags=["Owner"])
    def set_reward_period(request: ValueRequest, x_caller_address: str = Header(...)) -> OwnerActionEvent:
        try:
            return ledger.set_reward_period(x_caller_address, request.value)
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.post("/pool/withdraw", response_model=WithdrawResult, tags=["Owner"])
    def withdraw(request: WithdrawRequest, x_caller_address: str = Header(...)) -> WithdrawResult:
        try:
            return ledger.withdraw(x_caller_address, request.amount, request.asset)
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.post("/pool/fund", tags=["Pool"])
    def fund_reserve(request: AmountRequest, x_caller_address: str = Header(...)):
        try:
            return {"reserve": ledger.fund_reserve(x_caller_address, request.amount)}
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.post("/stakes", response_model=StakeResult, status_code=status.HTTP_201_CREATED, tags=["Stakes"])
    def stake_tokens(request: AmountRequest, x_caller_address: str = Header(...)) -> StakeResult:
        try:
            return ledger.stake_tokens(x_caller_address, request.amount)
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.post("/stakes/unstake", response_model=UnstakeResult, tags=["Stakes"])
    def unstake_tokens(x_caller_address: str = Header(...)) -> UnstakeResult:
        try:
            return ledger.unstake_tokens(x_caller_address)
        except StakingLedgerError as e:
            raise to_http_error(e)

    @app.post("/stakes/claim", response_model=ClaimResponse, tags=["Stakes"])
    def claim_reward(x_caller_address: str = Header(...)) -> ClaimResponse:
        try:
            payout = ledger.claim_reward(x_caller_address)
        except StakingLedgerError as e:
            raise to_http_error(e)
        return ClaimResponse(
            payout=payout,
            message="Reward claimed successfully" if payout.amount else "No reward accrued yet",
            record=ledger.stakers(x_caller_address),
        )

    @app.get("/stakers/{address}", response_model=StakerRecord, tags=["Stakes"])
    def get_staker(address: str) -> StakerRecord:
        return ledger.stakers(address)

    @app.get("/stakers/{address}/pending-reward", response_model=PendingRewardResponse, tags=["Stakes"])
    def get_pending_reward(address: str) -> PendingRewardResponse:
        return PendingRewardResponse(
            staker=address,
            pending_reward=ledger.pending_reward(address),
            as_of=ledger.clock.now(),
        )

    @app.get("/events", response_model=EventsResponse, tags=["Pool"])
    def get_events(limit: int = 50, offset: int = 0) -> EventsResponse:
        events = ledger.events
        return EventsResponse(events=events[offset:offset + limit], total_count=len(events))

    @app.post("/assets/{asset}/transfer", response_model=BalanceResponse, tags=["Assets"])
    def transfer_asset(asset: str, request: AssetTransferRequest, x_caller_address: str = Header(...)) -> BalanceResponse:
        if x_caller_address == ledger.pool_address:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="The pool address cannot send transfers",
            )
        if not ledger.transfers.transfer(asset, x_caller_address, request.to, request.amount):
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail=f"Transfer of {request.amount} {asset} from {x_caller_address} declined",
            )
        return BalanceResponse(asset=asset, holder=x_caller_address,
                               balance=ledger.transfers.balance_of(asset, x_caller_address))

    @app.get("/assets/{asset}/balances/{holder}", response_model=BalanceResponse, tags=["Assets"])
    def get_balance(asset: str, holder: str) -> BalanceResponse:
        return BalanceResponse(asset=asset, holder=holder, balance=ledger.transfers.balance_of(asset, holder))

    return app


def create_default_app() -> FastAPI:
    configure_logging()
    settings = StakingSettings.from_env()
    return create_app(settings.build_ledger(clock=SystemClock()))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_default_app(), host="0.0.0.0", port=8000)
