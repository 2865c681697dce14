from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from access_tokens_client import TokenRecord

from .config import TokenDefinition


@dataclass
class TokenChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass
class TokenDiff:
    token_id: str
    exists: bool
    changes: list[TokenChange] = field(default_factory=list)
    needs_revoke: bool = False
    needs_restore: bool = False

    @property
    def needs_update(self) -> bool:
        return bool(self.changes)

    def updates(self, definition: TokenDefinition) -> dict[str, Any]:
        """Partial update payload covering exactly the changed fields."""
        out: dict[str, Any] = {}
        for change in self.changes:
            if change.field == "secret_phc":
                out["secret_phc"] = definition.secret_phc
            else:
                out[change.field] = change.new_value
        return out


def compare_tokens(definition: TokenDefinition, remote: TokenRecord | None) -> TokenDiff:
    if remote is None:
        return TokenDiff(token_id=definition.token_id, exists=False)

    diff = TokenDiff(token_id=definition.token_id, exists=True)
    if definition.revoked and not remote.revoked:
        diff.needs_revoke = True
    elif not definition.revoked and remote.revoked:
        diff.needs_restore = True

    if definition.owner != remote.owner:
        diff.changes.append(TokenChange("owner", remote.owner, definition.owner))
    if definition.is_admin is not None and definition.is_admin != remote.is_admin:
        diff.changes.append(TokenChange("is_admin", remote.is_admin, definition.is_admin))
    if definition.secret_phc and definition.secret_phc != remote.secret_phc:
        # never echo hashes
        diff.changes.append(TokenChange("secret_phc", "[hidden]", "[updated]"))
    if definition.manages_expiry and definition.expires_at != remote.expires_at:
        diff.changes.append(TokenChange("expires_at", remote.expires_at, definition.expires_at))
    return diff
