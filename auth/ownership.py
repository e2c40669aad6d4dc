"""
auth/ownership.py -- Resource ownership guard for mutating endpoints.

Existence is checked by the caller (the CRUD controller raises NotFound)
before ensure_owner() runs, so a missing resource is always a 404, never a
403.
"""

from __future__ import annotations

from auth.models import Identity
from core.errors import Forbidden


def ensure_owner(owner_id: int, identity: Identity, entity_name: str = "resource") -> None:
    """Raise Forbidden unless identity is the recorded owner."""
    if owner_id != identity.user_id:
        raise Forbidden(f"You do not own this {entity_name}.")
