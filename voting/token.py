"""
Voting Token - Per-project fungible balance ledger.

Only the owning engine may mint or burn. Tokens are not transferable;
a member's balance always mirrors their membership's tokens_left.
"""

from typing import Dict, Optional
import logging

from voting.errors import Unauthorized, InsufficientTokens

log = logging.getLogger(__name__)


class VotingToken:
    """
    Mint/burn ledger restricted to a single owner.

    Usage:
        token = VotingToken("Budget 2025 Votes", "VOTE", owner=engine.address)
        token.mint(engine.address, "alice", 100)
        token.burn(engine.address, "alice", 4)
    """

    def __init__(self, name: str, symbol: str, owner: str):
        self.name = name
        self.symbol = symbol
        self.owner = owner
        self.total_supply = 0
        self._balances: Dict[str, int] = {}
        self._journal: Optional[Dict[str, Optional[int]]] = None
        self._supply_before = 0

    def _only_owner(self, caller: str):
        if caller != self.owner:
            raise Unauthorized(f"Only {self.owner} may mint or burn {self.symbol}")

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, caller: str, to: str, amount: int):
        """Create `amount` tokens for `to`."""
        self._only_owner(caller)
        if amount < 0:
            raise ValueError(f"Cannot mint a negative amount: {amount}")
        self._touch(to)
        self._balances[to] = self.balance_of(to) + amount
        self.total_supply += amount
        log.debug(f"Minted {amount} {self.symbol} to {to}")

    def burn(self, caller: str, from_: str, amount: int):
        """Destroy `amount` tokens held by `from_`."""
        self._only_owner(caller)
        if amount < 0:
            raise ValueError(f"Cannot burn a negative amount: {amount}")
        balance = self.balance_of(from_)
        if amount > balance:
            raise InsufficientTokens(f"{from_} holds {balance} {self.symbol}, cannot burn {amount}")
        self._touch(from_)
        self._balances[from_] = balance - amount
        self.total_supply -= amount
        log.debug(f"Burned {amount} {self.symbol} from {from_}")

    def holders(self) -> Dict[str, int]:
        return {a: b for a, b in self._balances.items() if b > 0}

    # Undo journal: previous balance of each account touched since begin().
    def begin(self):
        self._journal = {}
        self._supply_before = self.total_supply

    def _touch(self, account: str):
        if self._journal is not None and account not in self._journal:
            self._journal[account] = self._balances.get(account)

    def commit(self):
        self._journal = None

    def rollback(self):
        """Put back every balance touched since begin()."""
        if self._journal is None:
            return
        for account, balance in self._journal.items():
            if balance is None:
                self._balances.pop(account, None)
            else:
                self._balances[account] = balance
        self.total_supply = self._supply_before
        self._journal = None
