"""
Prompt Builder Backend — Security
Supabase JWT verification and encryption of saved provider API keys.
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from promptbuilder.core.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    """The authenticated caller, as asserted by the auth provider's token."""
    id: str
    email: Optional[str] = None


def decode_access_token(token: str) -> AuthUser:
    """Verify a Supabase access token and return the user it names."""
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("Token has no subject")
    return AuthUser(id=str(user_id), email=payload.get("email"))


def create_access_token(user_id: str, email: Optional[str] = None, expires_in: int = 3600) -> str:
    """Mint a token in the same shape Supabase issues (used by tooling and tests)."""
    claims = {
        "sub": user_id,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthUser:
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return decode_access_token(credentials.credentials)
    except ValueError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthUser]:
    if not credentials or not credentials.credentials:
        return None
    try:
        return decode_access_token(credentials.credentials)
    except ValueError:
        return None


# ── Saved API key encryption ─────────────────────────────────────────────────

def _fernet() -> Fernet:
    digest = hashlib.sha256(settings.API_KEY_ENCRYPTION_SECRET.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_api_key(plaintext: str) -> str:
    return _fernet().encrypt(plaintext.encode()).decode()


def decrypt_api_key(token: str) -> str:
    try:
        return _fernet().decrypt(token.encode()).decode()
    except InvalidToken as e:
        raise ValueError("Stored API key could not be decrypted") from e
