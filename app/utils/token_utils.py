from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app import config

bearer_scheme = HTTPBearer(auto_error=False)


def _get_secret_key() -> str:
    secret = config.SECRET_KEY
    if not secret:
        # Fail fast with a clear message instead of a generic 500
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    return secret


def decode_claims(token: str) -> dict:
    """Verified claims of a token issued by the identity provider.

    ``sub`` (or the older ``id``) is normalized into ``user_id``.
    Raises JWTError when the token is invalid or carries no user id.
    """
    payload = jwt.decode(token, _get_secret_key(), algorithms=[config.ALGORITHM])
    user_id = payload.get("sub") or payload.get("id")
    if user_id is None or str(user_id).strip() == "":
        raise JWTError("token has no subject")
    payload["user_id"] = str(user_id)
    return payload


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise credentials_exception
    try:
        return decode_claims(credentials.credentials)
    except JWTError:
        raise credentials_exception


async def get_current_user_id(claims: dict = Depends(get_current_claims)) -> str:
    return claims["user_id"]
