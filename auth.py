import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from database import collection, create_document, get_document, get_documents, update_document
from errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from schemas import LoginRequest, ProfileUpdate, SignupRequest, User, apply_changes

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid email or password"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False


PUBLIC_FIELDS = tuple(UserOut.model_fields)


def public_user(doc: dict) -> dict:
    return {field: doc.get(field) for field in PUBLIC_FIELDS}


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def signup(payload: SignupRequest) -> dict:
    if not payload.email or not payload.password or not payload.full_name:
        raise ValidationError("Email, password, and full name are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    email = normalize_email(payload.email)
    if collection("user").find_one({"email": email}):
        raise ConflictError("Email already registered")

    try:
        user = User(email=email, password=get_password_hash(payload.password), full_name=payload.full_name)
    except PydanticValidationError:
        raise ValidationError("Invalid email address")

    try:
        doc = create_document("user", user)
    except DuplicateKeyError:
        # lost the race against a concurrent signup for the same email
        logger.info("Duplicate signup rejected by unique index")
        raise ConflictError("Email already registered")
    logger.info("User %s signed up", doc["id"])
    return public_user(doc)


def authenticate(email: str, password: str) -> dict:
    """Return the stored user for valid, active credentials."""
    user = get_document("user", {"email": normalize_email(email)})
    if not user:
        # same bcrypt cost as a wrong password
        pwd_context.dummy_verify()
        logger.info("Login failed: unknown email")
        raise AuthError(INVALID_CREDENTIALS)
    if not verify_password(password, user.get("password", "")):
        logger.info("Login failed for %s: bad password", user["id"])
        raise AuthError(INVALID_CREDENTIALS)
    if not user.get("is_active", True):
        raise ForbiddenError("Account is inactive")
    return user


def login(payload: LoginRequest) -> dict:
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")
    return public_user(authenticate(payload.email, payload.password))


def issue_token(email: str, password: str) -> Token:
    user = authenticate(email, password)
    return Token(access_token=create_access_token({"sub": user["id"]}))


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AuthError("Not authenticated")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise AuthError("Could not validate credentials")
    except JWTError:
        raise AuthError("Could not validate credentials")
    user = get_document("user", {"id": user_id})
    if not user:
        raise AuthError("Could not validate credentials")
    if not user.get("is_active", True):
        raise ForbiddenError("Account is inactive")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("is_admin"):
        raise ForbiddenError("Admin only")
    return user


def update_profile(user_id: str, changes: ProfileUpdate) -> dict:
    data = changes.model_dump(exclude_unset=True)
    if not data:
        raise ValidationError("Nothing to update")
    current = get_document("user", {"id": user_id})
    if not current:
        raise NotFoundError("User not found")
    user = apply_changes(User, current, data)
    return public_user(update_document("user", user_id, {k: v for k, v in user.model_dump().items() if k in data}))


def get_user(user_id: str) -> dict:
    doc = get_document("user", {"id": user_id})
    if not doc:
        raise NotFoundError("User not found")
    return {**public_user(doc), "is_active": doc.get("is_active", True)}


def list_users() -> list:
    return [{**public_user(u), "is_active": u.get("is_active", True)} for u in get_documents("user")]


def set_user_active(user_id: str, is_active: bool) -> dict:
    doc = update_document("user", user_id, {"is_active": is_active})
    if not doc:
        raise NotFoundError("User not found")
    return {**public_user(doc), "is_active": doc["is_active"]}
