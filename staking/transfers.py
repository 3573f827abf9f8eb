import logging
from collections import defaultdict
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class AssetTransferService(Protocol):
    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> bool: ...

    def balance_of(self, asset: str, holder: str) -> int: ...


class InMemoryAssetTransferService:
    """Fungible-token book keyed by asset id.

    Each asset starts with its whole supply minted to one holder, the way a
    freshly deployed token credits its deployer.
    """

    def __init__(self, initial_supply: Optional[dict[str, tuple[str, int]]] = None):
        self.balances: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.total_supply: dict[str, int] = defaultdict(int)
        for asset, (holder, amount) in (initial_supply or {}).items():
            self.mint(asset, holder, amount)

    def mint(self, asset: str, holder: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot mint a negative amount: {amount}")
        self.balances[asset][holder] += amount
        self.total_supply[asset] += amount

    def balance_of(self, asset: str, holder: str) -> int:
        return self.balances[asset][holder] if asset in self.balances else 0

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> bool:
        if amount <= 0:
            logger.warning("Rejected transfer of %s %s: amount must be positive", amount, asset)
            return False
        if self.balance_of(asset, sender) < amount:
            logger.warning(
                "Rejected transfer of %s %s from %s: balance %s",
                amount, asset, sender, self.balance_of(asset, sender),
            )
            return False
        self.balances[asset][sender] -= amount
        self.balances[asset][recipient] += amount
        logger.debug("Transferred %s %s from %s to %s", amount, asset, sender, recipient)
        return True
