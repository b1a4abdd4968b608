from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging
import uuid

import bcrypt
from jose import jwt, JWTError

from app.config import get_settings
from app.models.user import User, TokenBlacklist, get_db

logger = logging.getLogger(__name__)
settings = get_settings()

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

http_bearer = HTTPBearer(auto_error=False)


# ===== Passwords =====
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ===== JWT helpers =====
def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    jti = uuid.uuid4().hex
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(subject), "exp": expire, "iat": now, "nbf": now, "jti": jti}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def is_token_blacklisted(db: Session, jti: str) -> bool:
    return db.query(TokenBlacklist).filter(TokenBlacklist.jti == jti).first() is not None


def blacklist_token(db: Session, jti: str) -> None:
    if not is_token_blacklisted(db, jti):
        db.add(TokenBlacklist(jti=jti))
        db.commit()


# ===== Firebase (optional) =====
_firebase_app = None


def _firebase_auth():
    """Return the firebase_admin.auth module, initialising the app once. None when not configured."""
    global _firebase_app
    if not settings.FIREBASE_CREDENTIALS:
        return None
    import firebase_admin
    from firebase_admin import auth as firebase_auth, credentials

    if _firebase_app is None:
        _firebase_app = firebase_admin.initialize_app(credentials.Certificate(settings.FIREBASE_CREDENTIALS))
        logger.info("Firebase admin initialised")
    return firebase_auth


def _user_from_firebase(db: Session, token: str) -> Optional[User]:
    firebase_auth = _firebase_auth()
    if firebase_auth is None:
        return None
    try:
        decoded = firebase_auth.verify_id_token(token)
    except Exception as e:
        logger.warning("Firebase token rejected: %s", e)
        return None
    uid = decoded.get("uid")
    user = db.query(User).filter(User.firebase_uid == uid).first()
    if not user and decoded.get("email"):
        user = db.query(User).filter(User.email == decoded["email"]).first()
        if user:
            user.firebase_uid = uid
            db.commit()
    if not user:
        display = decoded.get("name") or ""
        first, _, last = display.partition(" ")
        user = User(
            email=decoded.get("email") or f"{uid}@firebase.local",
            firebase_uid=uid,
            first_name=first or None,
            last_name=last or None,
            name=display or None,
            role="customer",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s from Firebase sign-in", user.id)
    return user


# ===== Dependencies =====
def get_current_user(
    token: HTTPAuthorizationCredentials = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> User:
    if not token or not token.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_access_token(token.credentials)
    except JWTError:
        user = _user_from_firebase(db, token.credentials)
        if user:
            return user
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    jti = payload.get("jti")
    if not jti or is_token_blacklisted(db, jti):
        raise HTTPException(status_code=401, detail="Token revoked")
    sub = payload.get("sub")
    user = db.query(User).filter(User.id == int(sub)).first() if sub and str(sub).isdigit() else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if (current_user.role or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def is_admin(user: Optional[User]) -> bool:
    return bool(user) and (user.role or "").lower() == "admin"
