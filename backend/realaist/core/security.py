"""
Security utilities.

Implements:
- Verification of session tokens issued by the auth provider
- Provenance tagging of sessions (provider-issued vs local mock)
- Paystack webhook signature verification (HMAC-SHA512)

Session issuance itself belongs to the auth provider; `create_session_token`
exists for local tooling and tests.
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from realaist.config import settings

SessionProvenance = Literal["provider", "local-mock"]

MOCK_ADMIN_ID = "local-admin"


# =============================================================================
# Session Tokens
# =============================================================================

class SessionData(BaseModel):
    """Identity extracted from a request."""
    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None
    issued_by: SessionProvenance = "provider"
    token: Optional[str] = None
    exp: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        """True only for sessions backed by a cryptographically issued token."""
        return self.issued_by == "provider" and bool(self.token)


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a provider-style session token.

    Args:
        user_id: User identifier
        email: User email
        role: Role claim
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=1)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "aud": settings.jwt_audience,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_session_token(token: str) -> Optional[SessionData]:
    """
    Verify and decode a session token.

    Args:
        token: JWT token string

    Returns:
        SessionData tagged as provider-issued if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    exp = payload.get("exp")
    return SessionData(
        user_id=user_id,
        email=payload.get("email"),
        role=payload.get("role"),
        issued_by="provider",
        token=token,
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )


def mock_admin_session() -> SessionData:
    """Local development identity. Never satisfies `is_verified`."""
    return SessionData(
        user_id=MOCK_ADMIN_ID,
        email="admin@localhost",
        role="admin",
        issued_by="local-mock",
    )


# =============================================================================
# Webhook Signatures
# =============================================================================

def compute_paystack_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_paystack_signature(
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
) -> bool:
    """
    Check the `x-paystack-signature` header against the raw request body.

    Args:
        raw_body: Exact bytes received
        signature: Header value
        secret: Paystack secret key, defaults to settings

    Returns:
        True if the signature matches
    """
    secret = secret or settings.paystack_secret_key
    if not secret or not signature:
        return False
    expected = compute_paystack_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature)
