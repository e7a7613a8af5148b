from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
import hashlib
import hmac
import secrets

from cidco_records.core.config import settings
from cidco_records.core.exceptions import InvalidTokenError


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = (password or '').encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def is_bcrypt_hash(stored: Optional[str]) -> bool:
    return bool(stored) and stored.startswith(("$2a$", "$2b$", "$2y$"))


def verify_password(plain_password: str, stored_hash: Optional[str]) -> bool:
    """Verify password against a bcrypt hash; only non-bcrypt values take the legacy path"""
    if not stored_hash:
        return False
    if is_bcrypt_hash(stored_hash):
        try:
            return bcrypt.checkpw((plain_password or '').encode('utf-8')[:72], stored_hash.encode('utf-8'))
        except ValueError:
            return False
    return verify_legacy_password(plain_password, stored_hash)


def verify_legacy_password(plain_password: str, stored_value: str) -> bool:
    """
    Accounts created before bcrypt hold either an unsalted SHA-256 hex digest
    or the password itself. Matching rows are re-hashed on login (see
    UserService.authenticate); drop this once no such rows remain.
    """
    plain = (plain_password or '').encode('utf-8')
    stored = stored_value.encode('utf-8')
    digest = hashlib.sha256(plain).hexdigest().encode('utf-8')
    return hmac.compare_digest(digest, stored) or hmac.compare_digest(plain, stored)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise InvalidTokenError()


def generate_reset_token() -> str:
    """32 random bytes, hex encoded"""
    return secrets.token_hex(32)
