# app/deps/admin.py
from fastapi import Depends, HTTPException, status

from app.utils.token_utils import get_current_claims


async def require_admin(claims: dict = Depends(get_current_claims)) -> str:
    """
    Requires the token to carry role=ADMIN (any case).
    Raises 403 if not an admin; returns the admin's user id.
    """
    if str(claims.get("role") or "GENERAL").upper() != "ADMIN":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return claims["user_id"]
