from __future__ import annotations

from access_tokens_cli.config import TokenDefinition
from access_tokens_cli.diff import compare_tokens
from access_tokens_client import TokenRecord


def _remote(**overrides) -> TokenRecord:
    data = {
        "token_id": "t1",
        "owner": "alice",
        "is_admin": False,
        "created_at": 1700000000,
        "secret_phc": "$scrypt$old",
        "expires_at": 1850000000,
    }
    data.update(overrides)
    return TokenRecord(**data)


def test_missing_remote_token() -> None:
    diff = compare_tokens(TokenDefinition(token_id="t1", owner="alice"), None)
    assert diff.exists is False
    assert diff.needs_update is False


def test_identical_token_has_no_changes() -> None:
    definition = TokenDefinition(
        token_id="t1", owner="alice", secret_phc="$scrypt$old", is_admin=False,
        expires_at=1850000000, manages_expiry=True,
    )
    diff = compare_tokens(definition, _remote())
    assert (diff.exists, diff.needs_update, diff.needs_revoke, diff.needs_restore) == (True, False, False, False)


def test_changed_fields_build_partial_update() -> None:
    definition = TokenDefinition(token_id="t1", owner="bob", secret_phc="$scrypt$new", is_admin=True)
    diff = compare_tokens(definition, _remote())

    assert [c.field for c in diff.changes] == ["owner", "is_admin", "secret_phc"]
    secret_change = diff.changes[2]
    assert (secret_change.old_value, secret_change.new_value) == ("[hidden]", "[updated]")
    assert diff.updates(definition) == {"owner": "bob", "is_admin": True, "secret_phc": "$scrypt$new"}


def test_expiry_only_compared_when_managed() -> None:
    untouched = TokenDefinition(token_id="t1", owner="alice")
    assert compare_tokens(untouched, _remote()).needs_update is False

    cleared = TokenDefinition(token_id="t1", owner="alice", expires_at=None, manages_expiry=True)
    diff = compare_tokens(cleared, _remote())
    assert diff.updates(cleared) == {"expires_at": None}


def test_revocation_state() -> None:
    assert compare_tokens(TokenDefinition(token_id="t1", owner="alice", revoked=True), _remote()).needs_revoke
    restored = compare_tokens(TokenDefinition(token_id="t1", owner="alice"), _remote(revoked_at=1700000001))
    assert restored.needs_restore
    assert not restored.needs_revoke
