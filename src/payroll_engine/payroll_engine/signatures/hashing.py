from __future__ import annotations

import hashlib
import hmac
from datetime import datetime

from ..core.enums import Role


def signature_hash(*, image_data: str, owner_role: Role, owner_id: int, payroll_id: int, timestamp: datetime) -> str:
    """SHA-256 over the signature image and everything that binds it to one slot."""
    h = hashlib.sha256()
    for part in (image_data, owner_role.value, str(owner_id), str(payroll_id), timestamp.isoformat()):
        h.update(part.encode("utf-8"))
        h.update(b"\x1f")
    return h.hexdigest()


def hashes_match(stored: str, recomputed: str) -> bool:
    return hmac.compare_digest(stored.encode("utf-8"), recomputed.encode("utf-8"))
