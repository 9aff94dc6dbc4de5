"""User key derivation from request credentials."""

from __future__ import annotations

import hashlib
from typing import Optional

ANONYMOUS_USER_KEY = "anonymous"
_KEY_PREFIX_LENGTH = 16


def build_user_key(
    session_token: Optional[str] = None, api_key: Optional[str] = None
) -> str:
    """
    Build a deterministic context key from the caller's credentials.

    Session users map to ``session:{first 16 chars of token}``. Callers that
    bring their own API key map to ``apikey:{first 16 hex of sha256(key)}`` so
    the raw key is never stored. Anything else shares the anonymous context.
    """
    if session_token:
        return f"session:{session_token[:_KEY_PREFIX_LENGTH]}"
    if api_key:
        digest = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
        return f"apikey:{digest[:_KEY_PREFIX_LENGTH]}"
    return ANONYMOUS_USER_KEY
