# auth.py - Authentication and Authorization
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from config import settings
from database import Storage
from models import User, UserRole
from errors import AuthenticationError
from permissions import Capability, require
import logging

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 scheme; anonymous requests get None and are classified by the guard
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/token", auto_error=False)

class TokenData(BaseModel):
    username: Optional[str] = None
    uid: Optional[str] = None
    role: Optional[str] = None

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)

# Token utilities
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def token_for(user: User) -> str:
    return create_access_token(data={"sub": user.username, "uid": user.id, "role": user.role.value})

def verify_token(token: str) -> TokenData:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    username = payload.get("sub")
    uid = payload.get("uid")
    if username is None or uid is None:
        raise AuthenticationError("Could not validate credentials")

    return TokenData(username=username, uid=uid, role=payload.get("role"))

# User authentication
def authenticate_user(storage: Storage, username: str, password: str) -> Optional[User]:
    """Authenticate user with username and password"""
    user = storage.get_user_by_username(username)
    if user is None:
        return None
    if not verify_password(password, user.password):
        return None
    return user

def seed_admin(storage: Storage, username: str, email: str, password: str) -> Optional[User]:
    """Create the initial admin account unless the username is already taken"""
    if not (username and email and password):
        return None

    existing = storage.get_user_by_username(username)
    if existing is not None:
        if existing.role is not UserRole.ADMIN:
            logger.warning(f"Admin bootstrap skipped: {username} exists with role {existing.role.value}")
        return existing

    admin = storage.create_user(User(
        username=username,
        email=email,
        password=get_password_hash(password),
        role=UserRole.ADMIN,
    ))
    logger.info(f"Admin account created: {username}")
    return admin

# Dependencies
def get_storage(request: Request) -> Storage:
    return request.app.state.storage

def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme),
    storage: Storage = Depends(get_storage),
) -> Optional[User]:
    """Get current user if a token was presented, None otherwise"""
    if not token:
        return None

    token_data = verify_token(token)
    user = storage.get_user(token_data.uid)
    if user is None:
        raise AuthenticationError("User not found")
    return user

def get_current_user(current_user: Optional[User] = Depends(get_current_user_optional)) -> User:
    """Require an authenticated user"""
    return require(current_user, Capability.AUTHENTICATED)

def get_admin_user(current_user: Optional[User] = Depends(get_current_user_optional)) -> User:
    """Require admin role"""
    return require(current_user, Capability.ADMIN)
