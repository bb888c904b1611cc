"""Share ledger (holder → shares, allowances).

Invariant:
    sum(balances) == total_shares
    잔고/allowance 0인 항목은 매핑에서 제거
"""

from __future__ import annotations

from typing import Any

from vstrc.core.exceptions import (
    InsufficientAllowanceError,
    InsufficientSharesError,
    InvalidParameterError,
)


class ShareLedger:
    """ERC-20 스타일 지분 원장.

    검증 실패 시 어떤 상태도 변경하지 않습니다.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._total_shares = 0

    @property
    def total_shares(self) -> int:
        return self._total_shares

    @property
    def holders(self) -> dict[str, int]:
        return dict(self._balances)

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def mint(self, to: str, shares: int) -> None:
        self._require_non_negative(shares)
        if shares == 0:
            return
        self._balances[to] = self._balances.get(to, 0) + shares
        self._total_shares += shares

    def burn(self, owner: str, shares: int) -> None:
        self._require_non_negative(shares)
        balance = self._balances.get(owner, 0)
        if balance < shares:
            msg = "Insufficient shares"
            raise InsufficientSharesError(
                msg, context={"owner": owner, "balance": balance, "shares": shares}
            )
        self._set_balance(owner, balance - shares)
        self._total_shares -= shares

    def transfer(self, sender: str, recipient: str, shares: int) -> None:
        self._require_non_negative(shares)
        balance = self._balances.get(sender, 0)
        if balance < shares:
            msg = "Insufficient shares"
            raise InsufficientSharesError(
                msg, context={"owner": sender, "balance": balance, "shares": shares}
            )
        if sender == recipient or shares == 0:
            return
        self._set_balance(sender, balance - shares)
        self._balances[recipient] = self._balances.get(recipient, 0) + shares

    def approve(self, owner: str, spender: str, shares: int) -> None:
        self._require_non_negative(shares)
        if shares == 0:
            self._allowances.pop((owner, spender), None)
        else:
            self._allowances[(owner, spender)] = shares

    def spend_allowance(self, owner: str, spender: str, shares: int) -> None:
        """spender가 owner 지분을 사용. owner 본인이면 no-op."""
        if owner == spender:
            return
        current = self.allowance(owner, spender)
        if current < shares:
            msg = "Insufficient allowance"
            raise InsufficientAllowanceError(
                msg,
                context={
                    "owner": owner,
                    "spender": spender,
                    "allowance": current,
                    "shares": shares,
                },
            )
        self.approve(owner, spender, current - shares)

    def _set_balance(self, holder: str, balance: int) -> None:
        if balance:
            self._balances[holder] = balance
        else:
            self._balances.pop(holder, None)

    @staticmethod
    def _require_non_negative(shares: int) -> None:
        if shares < 0:
            msg = "Share amount must be non-negative"
            raise InvalidParameterError(msg, context={"shares": shares})

    # ── Persistence ───────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "allowances": [
                {"owner": owner, "spender": spender, "shares": shares}
                for (owner, spender), shares in self._allowances.items()
            ],
            "total_shares": self._total_shares,
        }

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        self._balances = {h: int(v) for h, v in state.get("balances", {}).items() if int(v)}
        self._allowances = {
            (item["owner"], item["spender"]): int(item["shares"])
            for item in state.get("allowances", [])
            if int(item["shares"])
        }
        self._total_shares = int(state.get("total_shares", sum(self._balances.values())))
