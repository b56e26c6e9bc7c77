"""Webhook signature verification

All platforms sign the raw request body with HMAC-SHA256 using the
tenant's webhook secret and send the hex digest in a platform-specific
header. Verification must run on the exact bytes received; re-serializing
a parsed body changes the digest.
"""

import hashlib
import hmac
from typing import Optional, Union

Secret = Union[bytes, str]


def _secret_bytes(secret: Secret) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def compute_signature(raw_body: bytes, secret: Secret) -> str:
    """Hex HMAC-SHA256 of the raw body"""
    return hmac.new(_secret_bytes(secret), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, provided_signature: Optional[str], secret: Optional[Secret]) -> bool:
    """Verify a webhook signature in constant time.

    Args:
        raw_body: Request body exactly as received
        provided_signature: Value of the platform's signature header
        secret: Tenant webhook secret

    Returns:
        True if the signature matches. A missing signature or secret
        never verifies.
    """
    if not provided_signature or not secret:
        return False

    expected = compute_signature(raw_body, secret)
    provided = provided_signature.strip().lower().encode("utf-8")
    return hmac.compare_digest(expected.encode("ascii"), provided)
