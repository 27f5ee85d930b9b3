"""
=============================================================================
AUTH.PY — Authentication
=============================================================================
Handles:
  - Password hashing (passwords are never stored in plain text)
  - Creating and verifying JWT tokens
  - Resolving the current user from a token

Flow:
  1. The user sends email + password (signup / login)
  2. If they are correct, the server returns a JWT
  3. The client sends that JWT on every request: "Authorization: Bearer <token>"
  4. get_current_user verifies it and injects the User into the endpoint
"""

import os
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from database import get_db
from errors import UnauthorizedError
from models import User

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "shukuma-dev-secret-key-change-in-production")
# SECRET_KEY → signs the JWTs. In production use a long random value.

ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
# After this, the user has to log in again.

# ─────────────────────────────────────────────────────────────────────────────
# PASSWORD HASHING
# ─────────────────────────────────────────────────────────────────────────────
# bcrypt turns "my_password" into something like "$2b$12$LJ3m5..."
# It is one-way: the password cannot be recovered from the hash.


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# JWT TOKENS
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: int, email: str) -> str:
    """
    Creates a JWT with:
      - sub: the user id
      - email: for reference
      - exp: expiration
    signed with SECRET_KEY so nobody can forge it.
    """
    expire = datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": expire
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Returns the token payload, or None if it is invalid or expired"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCY: CURRENT USER
# ─────────────────────────────────────────────────────────────────────────────
# Used as a FastAPI dependency to protect endpoints:
#
#   @app.get("/api/tasks")
#   def list_tasks(user: User = Depends(get_current_user)): ...
#
# Must not write to the user: every write bumps version_id and would turn
# every authenticated request into a concurrent writer.

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    if credentials is None:
        raise UnauthorizedError("Not authorized, no token")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError("Not authorized, token failed")

    user_id = payload.get("sub")
    if user_id is None:
        raise UnauthorizedError("Token without user id")

    user = db.get(User, int(user_id))
    if user is None:
        raise UnauthorizedError("User not found")

    return user
