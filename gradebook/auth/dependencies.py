from typing import Dict
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from gradebook.auth.schemas import CurrentUser
from gradebook.auth.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the acting user and school from the access token claims."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    school_id_str = payload.get("school_id")
    role_name = payload.get("role")
    if not user_id_str or not school_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        school_id = UUID(school_id_str)
    except ValueError:
        raise credentials_exception

    permissions: Dict[str, Dict[str, bool]] = payload.get("permissions") or {}

    return CurrentUser(
        id=user_id,
        school_id=school_id,
        name=payload.get("name") or "Unknown user",
        role=role_name,
        permissions=permissions,
        academic_year=payload.get("academic_year"),
    )
