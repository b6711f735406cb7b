"""Session token signing used to identify the acting user."""
import base64
import hashlib
import hmac
import time

from therapy_modules.core.config import get_settings


def _secret() -> bytes:
    secret = get_settings().secret_key
    return secret.encode("utf-8") if isinstance(secret, str) else secret


# Session token: base64(user_id:timestamp).hmac
def _sign_payload(payload: bytes) -> str:
    sig = hmac.new(_secret(), payload, hashlib.sha256).hexdigest()
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=") + "." + sig


def _verify_sig(payload: bytes, sig: str) -> bool:
    expected = hmac.new(_secret(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, sig)


def create_session_token(user_id: int, issued_at: int | None = None) -> str:
    """Create a signed session token for the user."""
    ts = int(time.time()) if issued_at is None else issued_at
    payload = f"{user_id}:{ts}".encode("utf-8")
    return _sign_payload(payload)


def verify_session_token(token: str | None) -> int | None:
    """Verify signed token and return user_id if valid; None otherwise."""
    if not token or "." not in token:
        return None
    try:
        encoded, sig = token.rsplit(".", 1)
        pad = 4 - len(encoded) % 4
        if pad != 4:
            encoded += "=" * pad
        payload = base64.urlsafe_b64decode(encoded)
        if not _verify_sig(payload, sig):
            return None
        parts = payload.decode("utf-8").split(":", 1)
        user_id = int(parts[0])
        ts = int(parts[1])
        if abs(time.time() - ts) > get_settings().auth_cookie_max_age:
            return None
        return user_id
    except (ValueError, IndexError, UnicodeDecodeError):
        return None
