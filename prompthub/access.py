"""Access evaluation — decides whether a caller may invoke a prompt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import AccessPolicy, AccessType, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> AccessDecision:
        return cls(True)

    @classmethod
    def denied(cls, reason: str) -> AccessDecision:
        return cls(False, reason)


class HoldingChecker(Protocol):
    """External check for token balances and NFT ownership."""

    async def has_required_holding(self, caller: str, ref: str | None, amount: float) -> bool: ...


class DenyAllHoldingChecker:
    """Default checker when no chain integration is configured."""

    async def has_required_holding(self, caller: str, ref: str | None, amount: float) -> bool:
        return False


class StaticHoldingChecker:
    """In-memory balances keyed by (caller, token or NFT reference)."""

    def __init__(self, balances: dict[tuple[str, str], float] | None = None):
        self._balances: dict[tuple[str, str], float] = dict(balances or {})

    def set_balance(self, caller: str, ref: str, amount: float):
        self._balances[(caller, ref)] = amount

    async def has_required_holding(self, caller: str, ref: str | None, amount: float) -> bool:
        if ref is None:
            return False
        return self._balances.get((caller, ref), 0) >= amount


class AccessEvaluator:
    """Evaluates an AccessPolicy for a caller. Expiration overrides any grant."""

    def __init__(self, holdings: HoldingChecker | None = None, clock: Callable[[], int] = now_ms):
        self.holdings = holdings or DenyAllHoldingChecker()
        self._clock = clock

    async def check_access(self, policy: AccessPolicy, caller: str, owner: str = "") -> AccessDecision:
        decision = await self._check_type(policy, caller, owner)
        if not decision.allowed:
            return decision

        if policy.expiration_date is not None and self._clock() > policy.expiration_date:
            return AccessDecision.denied("Access to this prompt has expired")
        return decision

    async def require_access(self, policy: AccessPolicy, caller: str, owner: str = ""):
        """Raise ACCESS_DENIED unless the caller is allowed."""
        decision = await self.check_access(policy, caller, owner)
        if not decision.allowed:
            logger.info(f"Access denied for {caller}: {decision.reason}")
            raise PromptHubError(ErrorCode.ACCESS_DENIED, decision.reason, {"policy": policy.type.value})

    async def _check_type(self, policy: AccessPolicy, caller: str, owner: str) -> AccessDecision:
        if policy.type == AccessType.PUBLIC:
            return AccessDecision.ok()

        if policy.type == AccessType.PRIVATE:
            if owner and caller == owner:
                return AccessDecision.ok()
            return AccessDecision.denied("This prompt is private and can only be accessed by the author")

        if policy.type in (AccessType.TOKEN_GATED, AccessType.NFT_GATED):
            required = policy.minimum_balance if policy.minimum_balance is not None else 1
            if await self.holdings.has_required_holding(caller, policy.token_address, required):
                return AccessDecision.ok()
            if policy.type == AccessType.TOKEN_GATED:
                return AccessDecision.denied(f"Insufficient token balance: requires {required} of {policy.token_address}")
            return AccessDecision.denied(f"Caller does not own the required NFT {policy.token_address}")

        if policy.type == AccessType.CUSTOM:
            if policy.whitelist and caller in policy.whitelist:
                return AccessDecision.ok()
            return AccessDecision.denied("Caller is not in the whitelist for this prompt")

        return AccessDecision.denied(f"Unsupported access policy: {policy.type}")
