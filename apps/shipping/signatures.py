"""
Yalidine webhook signature verification.

Yalidine signs each delivery with HMAC-SHA256 over the raw request body,
hex-encoded in the X-YALIDINE-SIGNATURE header.
"""
import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = "X-YALIDINE-SIGNATURE"


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def is_valid_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Check `signature` against the body.

    An empty secret disables verification and always passes.
    """
    if not secret:
        return True
    if not signature:
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected, signature.strip().lower())
