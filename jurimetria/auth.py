from __future__ import annotations

import hmac
from typing import Optional

from jurimetria.config import Settings, get_settings


def check_password(candidate: Optional[str], settings: Optional[Settings] = None) -> bool:
    """Constant-time check against the configured shared password; none configured means no access."""
    expected = (settings or get_settings()).app_password
    if not expected or candidate is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
