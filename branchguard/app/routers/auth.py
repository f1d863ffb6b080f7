"""API key registration and authentication."""
import sqlite3

from fastapi import APIRouter, HTTPException, Header, Depends
from pydantic import BaseModel, EmailStr
from typing import Optional
from .. import db
from branchguard import __version__ as BG_VERSION
from branchguard.utils.errors import AuthenticationError

router = APIRouter(prefix="/v1/auth", tags=["Authentication"])

class RegisterRequest(BaseModel):
    email: EmailStr

class RegisterResponse(BaseModel):
    service: str = "branchguard"
    version: str = BG_VERSION
    user_id: str
    api_key: str
    message: str = "API key created successfully. Save it securely - it won't be shown again."

class StatusResponse(BaseModel):
    service: str = "branchguard"
    version: str = BG_VERSION
    user_id: str
    email: str
    usage_count: int
    created_at: str

@router.post("/register", response_model=RegisterResponse)
def register(body: RegisterRequest):
    """Register a new user and get an API key."""
    if db.get_api_key_by_email(body.email):
        raise HTTPException(
            status_code=400,
            detail="Email already registered. Contact support if you lost your key."
        )
    try:
        row = db.create_api_key(body.email)
    except sqlite3.IntegrityError:
        # lost a race with a concurrent registration for the same email
        raise HTTPException(status_code=400, detail="Email already registered.")

    return RegisterResponse(user_id=row["user_id"], api_key=row["api_key"])

@router.get("/status", response_model=StatusResponse)
def get_status(x_api_key: str = Header(..., alias="X-API-Key")):
    """Get API key status and usage."""
    key_info = db.validate_api_key(x_api_key)
    if not key_info:
        raise HTTPException(
            status_code=401,
            detail="Invalid or inactive API key"
        )

    return StatusResponse(
        user_id=key_info["user_id"],
        email=key_info["email"],
        usage_count=key_info["usage_count"],
        created_at=key_info["created_at"]
    )

def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> str:
    """Dependency resolving the X-API-Key header to the caller's user id."""
    if not x_api_key:
        raise AuthenticationError("X-API-Key header required")

    key_info = db.validate_api_key(x_api_key)
    if not key_info:
        raise AuthenticationError("Invalid or inactive API key")

    return key_info["user_id"]
