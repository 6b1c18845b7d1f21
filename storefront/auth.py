from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from .core_settings import Settings, get_settings

def create_access_token(subject: str, expires_minutes: int = 60, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None
