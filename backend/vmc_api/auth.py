from fastapi import HTTPException, Depends, Cookie
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from jose import jwt, JWTError, ExpiredSignatureError
from datetime import datetime, timedelta, timezone
import os, logging, uuid
import bcrypt

from .db import get_db
from .models import User

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
ALGO = "HS256"
REGISTER_TOKEN_MINUTES = 60
LOGIN_TOKEN_MINUTES = 240
BCRYPT_ROUNDS = 10

logger = logging.getLogger(__name__)

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed hash in DB
        return False

def create_token(sub: str, minutes: int = 60, **claims):
    now = datetime.now(timezone.utc)
    # jti keeps two tokens issued in the same second distinct
    payload = {"sub": sub, "iat": now, "exp": now + timedelta(minutes=minutes), "jti": uuid.uuid4().hex, **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm=ALGO)

def user_token(user: User, minutes: int = LOGIN_TOKEN_MINUTES):
    return create_token(sub=user.login, minutes=minutes, uid=user.id, login=user.login, role=user.role)

def short(token: str) -> str:
    return token[:10] + "..."

security = HTTPBearer(auto_error=False)

def _extract_token(creds: HTTPAuthorizationCredentials | None, cookie_token: str | None):
    # explicit Authorization header wins over the cookie
    if creds and creds.credentials:
        return creds.credentials
    return cookie_token or None

async def require_user(
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    token: str | None = Cookie(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    raw = _extract_token(creds, token)
    if not raw:
        logger.warning("access denied: no token in header or cookie")
        raise HTTPException(status_code=403, detail="Missing token")
    try:
        data = jwt.decode(raw, JWT_SECRET, algorithms=[ALGO])
    except ExpiredSignatureError:
        logger.info("expired token %s", short(raw))
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        logger.warning("invalid token %s", short(raw))
        raise HTTPException(status_code=401, detail="Invalid token")

    uid = data.get("uid")
    user = await db.get(User, uid) if isinstance(uid, int) else None
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    # a newer login or a logout replaces the stored token
    if user.token != raw:
        logger.info("revoked token %s for %s", short(raw), user.login)
        raise HTTPException(status_code=401, detail="Token revoked")
    return user
