"""Test execution fingerprints."""

from prompthub.signature import canonical_json, hash_value, sign_execution, verify_signature

ARGS = ("exec-1", "summarize", "1.0.0", {"text": "hello"}, {"content": "hi"}, "alice", 1700000000000)


def test_canonical_json_sorts_keys():
    assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
    assert hash_value({"b": 1, "a": 2}) == hash_value({"a": 2, "b": 1})


def test_signature_is_deterministic():
    sig = sign_execution(*ARGS)
    assert sig == sign_execution(*ARGS)
    assert len(sig) == 64


def test_signature_changes_with_any_field():
    base = sign_execution(*ARGS)
    for i, replacement in enumerate(["exec-2", "other", "2.0.0", {"text": "bye"}, {"content": "yo"}, "bob", 1]):
        args = list(ARGS)
        args[i] = replacement
        assert sign_execution(*args) != base


def test_verify_signature():
    sig = sign_execution(*ARGS)
    assert verify_signature(sig, *ARGS)
    assert not verify_signature("0" * 64, *ARGS)
    assert not verify_signature(None, *ARGS)
