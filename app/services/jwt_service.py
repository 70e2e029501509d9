from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from app.config import get_settings

ALGORITHM = "HS256"
AUDIENCE = "authenticated"
ACCESS_TOKEN_EXPIRE_HOURS = 1


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """
    Create a token shaped like a Supabase access token.
    Supabase issues the real ones; this is used by local tooling and tests.
    """
    settings = get_settings()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)

    to_encode = {
        "sub": user_id,
        "aud": AUDIENCE,
        "role": AUDIENCE,
        "exp": expire,
        "iat": datetime.now(timezone.utc)
    }
    return jwt.encode(to_encode, settings.supabase_jwt_secret, algorithm=ALGORITHM)


def verify_token(token: str) -> str | None:
    """
    Verify a Supabase access token and return the user id if valid.
    Returns None if token is invalid or expired.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.supabase_jwt_secret, algorithms=[ALGORITHM], audience=AUDIENCE)
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
        return user_id
    except JWTError:
        return None
