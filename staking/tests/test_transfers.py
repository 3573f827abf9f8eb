"""
Unit Tests for the in-memory asset book and clocks
"""

import pytest

from staking.clock import ManualClock, SystemClock
from staking.transfers import InMemoryAssetTransferService


OWNER = "0xowner"
ADDR1 = "0xaddr1"
ADDR2 = "0xaddr2"
SUPPLY = 10 * 10**18


def make_book() -> InMemoryAssetTransferService:
    return InMemoryAssetTransferService(initial_supply={"TKA": (OWNER, SUPPLY)})


class TestAssetTransfers:
    """Tests for token transfers between holders."""

    def test_supply_minted_to_deployer(self):
        """Test the whole supply starts with the deployer."""
        book = make_book()

        assert book.balance_of("TKA", OWNER) == SUPPLY
        assert book.total_supply["TKA"] == SUPPLY

    def test_transfer_between_accounts(self):
        """Test tokens move between accounts."""
        book = make_book()
        amount = 5 * 10**18

        assert book.transfer("TKA", OWNER, ADDR1, amount)
        assert book.balance_of("TKA", ADDR1) == amount

        assert book.transfer("TKA", ADDR1, ADDR2, amount)
        assert book.balance_of("TKA", ADDR2) == amount
        assert book.balance_of("TKA", ADDR1) == 0

    def test_transfer_exceeding_balance_declined(self):
        """Test a sender without enough tokens is declined and balances hold."""
        book = make_book()

        assert not book.transfer("TKA", ADDR1, OWNER, 10**18)
        assert book.balance_of("TKA", OWNER) == SUPPLY

    def test_non_positive_transfer_declined(self):
        """Test zero and negative amounts are declined."""
        book = make_book()

        assert not book.transfer("TKA", OWNER, ADDR1, 0)
        assert not book.transfer("TKA", OWNER, ADDR1, -1)
        assert book.balance_of("TKA", OWNER) == SUPPLY

    def test_unknown_asset_has_zero_balance(self):
        """Test reading an asset that was never minted."""
        book = make_book()

        assert book.balance_of("NOPE", OWNER) == 0
        assert not book.transfer("NOPE", OWNER, ADDR1, 1)

    def test_supply_is_conserved(self):
        """Test transfers never change total supply."""
        book = make_book()
        book.transfer("TKA", OWNER, ADDR1, 3)
        book.transfer("TKA", ADDR1, ADDR2, 2)

        total = sum(book.balance_of("TKA", a) for a in (OWNER, ADDR1, ADDR2))
        assert total == book.total_supply["TKA"]


class TestClocks:
    """Tests for clock implementations."""

    def test_manual_clock_advances(self):
        """Test the manual clock moves forward on request."""
        clock = ManualClock(100)

        assert clock.advance(5) == 105
        assert clock.now() == 105

    def test_manual_clock_never_goes_back(self):
        """Test the manual clock refuses to move backwards."""
        clock = ManualClock(100)

        with pytest.raises(ValueError):
            clock.set(99)

    def test_system_clock_returns_whole_seconds(self):
        """Test the system clock reports an integer timestamp."""
        assert isinstance(SystemClock().now(), int)
