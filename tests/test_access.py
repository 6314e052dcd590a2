"""Test access policy evaluation."""

import asyncio

import pytest

from prompthub.access import AccessEvaluator, StaticHoldingChecker
from prompthub.errors import ErrorCode, PromptHubError
from prompthub.models import AccessPolicy


def check(policy, caller, owner="", holdings=None, now=1_000):
    evaluator = AccessEvaluator(holdings, clock=lambda: now)
    return asyncio.run(evaluator.check_access(AccessPolicy.from_dict(policy), caller, owner))


def test_public_allows_anyone():
    assert check({"type": "public"}, "anyone").allowed


def test_private_only_owner():
    assert check({"type": "private"}, "alice", owner="alice").allowed
    decision = check({"type": "private"}, "bob", owner="alice")
    assert not decision.allowed
    assert "private" in decision.reason


def test_token_gated_uses_holdings():
    holdings = StaticHoldingChecker({("alice", "0xtoken"): 10})
    policy = {"type": "token_gated", "tokenAddress": "0xtoken", "minimumBalance": 5}
    assert check(policy, "alice", holdings=holdings).allowed

    decision = check(policy, "bob", holdings=holdings)
    assert not decision.allowed
    assert "Insufficient token balance" in decision.reason


def test_token_gated_denied_without_checker():
    assert not check({"type": "token_gated", "tokenAddress": "0xtoken"}, "alice").allowed


def test_nft_gated_defaults_to_one():
    holdings = StaticHoldingChecker()
    holdings.set_balance("alice", "0xnft", 1)
    policy = {"type": "nft_gated", "tokenAddress": "0xnft"}
    assert check(policy, "alice", holdings=holdings).allowed
    assert "NFT" in check(policy, "bob", holdings=holdings).reason


def test_custom_whitelist():
    policy = {"type": "custom", "whitelist": ["alice"]}
    assert check(policy, "alice").allowed
    assert not check(policy, "bob").allowed


def test_custom_without_whitelist_denies():
    assert not check({"type": "custom"}, "alice").allowed


def test_expiration_overrides_grant():
    decision = check({"type": "public", "expirationDate": 500}, "alice", now=1_000)
    assert not decision.allowed
    assert decision.reason == "Access to this prompt has expired"
    assert check({"type": "public", "expirationDate": 5_000}, "alice", now=1_000).allowed


def test_require_access_raises():
    evaluator = AccessEvaluator()
    with pytest.raises(PromptHubError) as exc:
        asyncio.run(evaluator.require_access(AccessPolicy.from_dict({"type": "custom"}), "bob"))
    assert exc.value.code == ErrorCode.ACCESS_DENIED
