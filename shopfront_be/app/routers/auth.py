from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from jose import JWTError
import logging

from app.models.user import User, get_db
from app.schemas.user import LoginSchema, ProfileUpdate, RegisterSchema, UserOut
from app.utils.security import (
    blacklist_token,
    create_access_token,
    decode_access_token,
    get_current_user,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()
bearer = HTTPBearer(auto_error=False)


def _full_name(first_name, last_name):
    return " ".join(p for p in (first_name, last_name) if p) or None


@router.post("/register", status_code=201)
def register(user: RegisterSchema, db: Session = Depends(get_db)):
    email = user.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    new_user = User(
        first_name=user.first_name,
        last_name=user.last_name,
        name=_full_name(user.first_name, user.last_name),
        email=email,
        phone=user.phone,
        password=hash_password(user.password),
        role="customer",
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)
    return {
        "message": "User registered successfully",
        "user": UserOut.model_validate(new_user),
        "token": create_access_token(subject=new_user.id),
    }


@router.post("/login")
def login(credentials: LoginSchema, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()
    if not user or not verify_password(credentials.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {
        "message": "Login successful",
        "user": UserOut.model_validate(user),
        "token": create_access_token(subject=user.id),
    }


@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    return {"user": UserOut.model_validate(current_user)}


@router.put("/profile")
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, key, value)
    current_user.name = _full_name(current_user.first_name, current_user.last_name)
    db.commit()
    db.refresh(current_user)
    return {"message": "Profile updated successfully", "user": UserOut.model_validate(current_user)}


@router.post("/logout")
def logout(creds: HTTPAuthorizationCredentials = Depends(bearer), db: Session = Depends(get_db)):
    if creds and creds.credentials:
        try:
            jti = decode_access_token(creds.credentials).get("jti")
        except JWTError:
            jti = None
        if jti:
            blacklist_token(db, jti)
    return {"message": "Logged out successfully"}
