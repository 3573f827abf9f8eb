"""
HTTP Tests for the Staking Ledger API

Tests cover:
1. Pool inspection and owner endpoints
2. Stake, claim and unstake flows over HTTP
3. Error-to-status mapping
"""

import pytest
from fastapi.testclient import TestClient

from staking.api import create_app
from staking.clock import ManualClock
from staking.config import StakingSettings


OWNER = "0xowner"
USER0 = "0xuser0"
START = 1_700_000_000
SUPPLY = 100 * 10**18
USER0_DEPOSIT = 10 * 10**18


def make_client():
    clock = ManualClock(START)
    settings = StakingSettings(
        owner=OWNER,
        reward_period_seconds=1,
        start_timestamp=START,
        end_timestamp=START + 60,
        percent_per_period=10,
        initial_supply=SUPPLY,
    )
    ledger = settings.build_ledger(clock=clock)
    client = TestClient(create_app(ledger))

    as_owner = {"X-Caller-Address": OWNER}
    client.post("/pool/fund", json={"amount": SUPPLY // 2}, headers=as_owner)
    client.post(f"/assets/{settings.staking_asset}/transfer",
                json={"to": USER0, "amount": USER0_DEPOSIT}, headers=as_owner)
    return client, clock, settings


class TestPoolEndpoints:
    """Tests for pool and owner endpoints."""

    def test_health(self):
        """Test the health endpoint."""
        client, _, _ = make_client()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_pool_state(self):
        """Test the pool endpoint reports config and reserve."""
        client, _, _ = make_client()

        body = client.get("/pool").json()

        assert body["config"]["owner"] == OWNER
        assert body["reserve"] == SUPPLY // 2
        assert body["total_staked"] == 0
        assert body["now"] == START

    def test_owner_sets_rate(self):
        """Test the owner can change the rate and the event is recorded."""
        client, _, _ = make_client()

        response = client.put("/pool/percent-per-period", json={"value": 20},
                              headers={"X-Caller-Address": OWNER})

        assert response.status_code == 200
        assert response.json()["action_kind"] == 0
        assert response.json()["new_value"] == 20
        events = client.get("/events").json()
        assert events["total_count"] == 1

    def test_non_owner_forbidden(self):
        """Test a non-owner gets 403 and the period is unchanged."""
        client, _, _ = make_client()

        response = client.put("/pool/reward-period", json={"value": 3600},
                              headers={"X-Caller-Address": USER0})

        assert response.status_code == 403
        assert client.get("/pool").json()["config"]["reward_period_seconds"] == 1

    def test_missing_caller_header(self):
        """Test calls without a caller identity are rejected."""
        client, _, _ = make_client()

        response = client.post("/stakes", json={"amount": 1})

        assert response.status_code == 422

    def test_owner_withdraw(self):
        """Test the owner can withdraw reserve funds."""
        client, _, settings = make_client()

        response = client.post("/pool/withdraw",
                               json={"amount": SUPPLY // 2, "asset": settings.reward_asset},
                               headers={"X-Caller-Address": OWNER})

        assert response.status_code == 200
        assert client.get("/pool").json()["reserve"] == 0


class TestStakeEndpoints:
    """Tests for staker endpoints."""

    def test_stake_claim_unstake_flow(self):
        """Test a full stake, claim and unstake round over HTTP."""
        client, clock, settings = make_client()
        as_user = {"X-Caller-Address": USER0}

        response = client.post("/stakes", json={"amount": USER0_DEPOSIT}, headers=as_user)
        assert response.status_code == 201
        assert client.get(f"/stakers/{USER0}").json()["amount"] == USER0_DEPOSIT

        clock.advance(5)
        assert client.get(f"/stakers/{USER0}/pending-reward").json()["pending_reward"] == 5 * 10**17

        claim = client.post("/stakes/claim", headers=as_user).json()
        assert claim["payout"]["amount"] == 5 * 10**17
        assert claim["payout"]["time_stamp"] == START + 5
        assert claim["record"]["time_stamp"] == START + 5

        clock.advance(2)
        unstake = client.post("/stakes/unstake", headers=as_user).json()
        assert unstake["principal_returned"] == USER0_DEPOSIT
        assert unstake["reward_paid"] == 2 * 10**17

        balance = client.get(f"/assets/{settings.reward_asset}/balances/{USER0}").json()
        assert balance["balance"] == 7 * 10**17

    def test_claim_without_stake_conflict(self):
        """Test claiming with no stake returns 409."""
        client, _, _ = make_client()

        response = client.post("/stakes/claim", headers={"X-Caller-Address": USER0})

        assert response.status_code == 409

    def test_stake_outside_window_conflict(self):
        """Test staking after the window closes returns 409."""
        client, clock, _ = make_client()
        clock.advance(61)

        response = client.post("/stakes", json={"amount": 1}, headers={"X-Caller-Address": USER0})

        assert response.status_code == 409

    def test_stake_beyond_balance_declined(self):
        """Test a stake the caller cannot fund returns 402."""
        client, _, _ = make_client()

        response = client.post("/stakes", json={"amount": USER0_DEPOSIT + 1},
                               headers={"X-Caller-Address": USER0})

        assert response.status_code == 402

    @pytest.mark.parametrize("amount", [0, -1])
    def test_invalid_amount_bad_request(self, amount):
        """Test non-positive stakes return 400."""
        client, _, _ = make_client()

        response = client.post("/stakes", json={"amount": amount},
                               headers={"X-Caller-Address": USER0})

        assert response.status_code == 400

    def test_pool_cannot_send_staked_principal(self):
        """Test transfers spoofing the pool address are forbidden and principal stays put."""
        client, _, settings = make_client()
        as_user = {"X-Caller-Address": USER0}
        client.post("/stakes", json={"amount": USER0_DEPOSIT}, headers=as_user)

        response = client.post(f"/assets/{settings.staking_asset}/transfer",
                               json={"to": USER0, "amount": USER0_DEPOSIT},
                               headers={"X-Caller-Address": settings.pool_address})

        assert response.status_code == 403
        pool = client.get(f"/assets/{settings.staking_asset}/balances/{settings.pool_address}").json()
        assert pool["balance"] == USER0_DEPOSIT
        assert client.get("/pool").json()["total_staked"] == USER0_DEPOSIT

        unstake = client.post("/stakes/unstake", headers=as_user)
        assert unstake.status_code == 200
        assert unstake.json()["principal_returned"] == USER0_DEPOSIT
