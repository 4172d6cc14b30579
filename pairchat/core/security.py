"""
Security utilities for password hashing and JWT tokens.
Uses bcrypt for secure password hashing.
Uses python-jose for JWT token generation and validation.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import bcrypt
from jose import jwt, JWTError


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash
        rounds: bcrypt cost factor

    Returns:
        Hashed password as a string
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Previously hashed password

    Returns:
        True if password matches, False otherwise
    """
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def create_access_token(
    user_id: int,
    username: str,
    secret_key: str,
    algorithm: str = "HS256",
    expire_minutes: int = 60
) -> Dict[str, Any]:
    """
    Create a signed JWT access token carrying the user's identity claims.

    Args:
        user_id: User ID to encode in the token
        username: Username to encode in the token
        secret_key: Signing key
        algorithm: JWT signing algorithm
        expire_minutes: Token lifetime

    Returns:
        Dictionary with token, expires_at, issued_at
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=expire_minutes)

    payload = {
        "user_id": user_id,
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
        "type": "access"
    }

    token = jwt.encode(payload, secret_key, algorithm=algorithm)

    return {
        "token": token,
        "expires_at": expires_at,
        "issued_at": now
    }


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string
        secret_key: Signing key
        algorithm: Expected JWT signing algorithm

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
        return payload
    except JWTError:
        return None
