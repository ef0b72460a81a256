"""
app/dependencies/access_control.py — Portfolio admin sessions
==============================================================

One AdminAuth per app (``app.state.auth``). Credentials and the signing key
come from the environment (.env); token lifetime and audience come from the
``security.admin_token`` section of config.tech.yaml.

Tokens are HS256 JWTs scoped to the portfolio admin::

    {"sub": <username>, "aud": "portfolio-admin", "scope": "content:write",
     "iat": ..., "exp": ...}

Routes opt in with ``Depends(require_admin)``; the admin router sets it at
router level so every admin-mode endpoint is covered.
"""

import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import jwt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

logger = logging.getLogger(__name__)

_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_ENV_FILE)

ALGORITHM = "HS256"
SCOPE = "content:write"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/admin/login")


@dataclass
class AdminAuth:
    username: str
    password: str
    secret_key: str
    token_minutes: int = 60
    audience: str = "portfolio-admin"

    @classmethod
    def from_config(cls, config: dict) -> "AdminAuth":
        token_cfg = config.get("security", {}).get("admin_token", {})
        secret_key = os.environ.get("ADMIN_SECRET_KEY", "")
        if not secret_key:
            secret_key = secrets.token_urlsafe(48)
            logger.warning("ADMIN_SECRET_KEY not set, admin sessions will not survive a restart")
        password = os.environ.get("ADMIN_PASSWORD", "")
        if not password:
            logger.error("ADMIN_PASSWORD not set, admin login disabled")
        return cls(
            username=os.environ.get("ADMIN_USERNAME", "admin"),
            password=password,
            secret_key=secret_key,
            token_minutes=int(token_cfg.get("minutes", 60)),
            audience=token_cfg.get("audience", "portfolio-admin"),
        )

    def login(self, username: str, password: str) -> Optional[str]:
        """Token for matching credentials, None otherwise."""
        if not self.password:
            return None
        if not (secrets.compare_digest(username, self.username)
                and secrets.compare_digest(password, self.password)):
            logger.warning(f"Failed admin login for '{username}'")
            return None
        return self.issue(username)

    def issue(self, subject: str, lifetime: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": subject,
            "aud": self.audience,
            "scope": SCOPE,
            "iat": now,
            "exp": now + (lifetime or timedelta(minutes=self.token_minutes)),
        }
        return jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        """Subject of a valid admin token; raises 401 otherwise."""
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM], audience=self.audience)
        except jwt.ExpiredSignatureError:
            raise _unauthorized("Authentication expired. Please login again.")
        except jwt.InvalidTokenError:
            raise _unauthorized("Invalid admin token")
        if claims.get("scope") != SCOPE or not claims.get("sub"):
            raise _unauthorized("Invalid admin token")
        return claims["sub"]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_admin(request: Request, token: str = Depends(oauth2_scheme)) -> str:
    return request.app.state.auth.verify(token)
