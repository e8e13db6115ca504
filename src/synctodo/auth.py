from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .settings import get_settings

_security = HTTPBasic(auto_error=False)


# PUBLIC_INTERFACE
async def get_current_owner(creds: Optional[HTTPBasicCredentials] = Depends(_security)) -> Optional[str]:
    """
    Resolve the owner principal of the current request.

    Behavior:
    - If settings.enable_basic_auth is False (default): the configured
      DEFAULT_OWNER_ID, or None when it is empty (the store then refuses the
      call as unauthenticated).
    - If True: validates provided credentials against BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD
      and returns the username as the owner id. Missing or invalid credentials
      raise 401 with WWW-Authenticate: Basic.
    """
    settings = get_settings()

    if not settings.enable_basic_auth:
        return settings.default_owner_id

    # If security scheme didn't parse credentials or none were sent
    if creds is None or not creds.username or creds.password is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    expected_user = settings.basic_auth_username
    expected_pass = settings.basic_auth_password
    if expected_user is None or expected_pass is None:
        # Misconfiguration: auth enabled but username/password not provided
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Server authentication not configured",
            headers={"WWW-Authenticate": "Basic"},
        )

    user_ok = secrets.compare_digest(creds.username.encode(), expected_user.encode())
    pass_ok = secrets.compare_digest(creds.password.encode(), expected_pass.encode())
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return creds.username
