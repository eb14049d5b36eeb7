"""Authentication router and the auth dependencies shared by every other router.

 - JWT configuration sourced from environment variables (JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS)
 - Standardized error codes: UNAUTHORIZED (no token), AUTH_INVALID_CREDENTIALS, AUTH_TOKEN_EXPIRED, FORBIDDEN
 - Login success/failure counters
"""

from datetime import datetime, timedelta, UTC
import os
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, model_validator
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..config.observability import trace_operation, auth_login_counter, auth_login_failed_counter
from ..models.database import Employee
from ..services import employee_service
from ..utils.api_shapes import success as _success
from ..utils.errors import ERROR_CODES, NotFoundError, http_error

SECRET_KEY = os.getenv("JWT_SECRET", "dev-insecure-secret-change")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = float(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "0.5"))
ACCESS_TOKEN_EXPIRE_MINUTES = int(ACCESS_TOKEN_EXPIRE_HOURS * 60)

router = APIRouter()

# auto_error=False so a missing header yields our 401 envelope rather than FastAPI's 403
security = HTTPBearer(auto_error=False)


class LoginRequest(BaseModel):
    """Login by email or by username (the employee's name)."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def ensure_identifier(self):  # type: ignore
        if not self.username and not self.email:
            raise ValueError("Either username or email must be provided")
        return self


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _invalid(message: str = "Invalid authentication token"):
    return http_error(
        status.HTTP_401_UNAUTHORIZED,
        ERROR_CODES["auth_invalid"],
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db_dependency),
) -> Employee:
    """Resolve the bearer token to an active employee."""
    if credentials is None:
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            ERROR_CODES["unauthorized"],
            "Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            ERROR_CODES["auth_expired"],
            "Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except jwt.PyJWTError as exc:
        raise _invalid() from exc

    subject: str | None = payload.get("sub")  # type: ignore[assignment]
    if not subject:
        raise _invalid()
    try:
        employee = await employee_service.get_employee(db, subject)
    except NotFoundError as exc:
        raise _invalid("Invalid credentials") from exc
    if not employee.is_active:
        raise _invalid("Account is inactive")
    return employee


def require_permission(permission: str):
    """Dependency factory: the current user must hold ``permission`` (or fullAccess)."""

    async def dependency(current_user: Employee = Depends(get_current_user)) -> Employee:
        if not employee_service.has_permission(current_user.role, permission):
            raise http_error(
                status.HTTP_403_FORBIDDEN,
                ERROR_CODES["forbidden"],
                f"You do not have permission to perform this action ({permission})",
            )
        return current_user

    return dependency


def _profile(employee: Employee) -> dict:
    data = employee_service.serialize_employee(employee)
    data["permissions"] = employee_service.resolved_permissions(employee.role)
    return data


@router.post("/login")
async def login(
    login_request: LoginRequest,
    db: AsyncSession = Depends(get_async_db_dependency),
):
    """Authenticate by email (preferred) or username and return a JWT."""
    with trace_operation("auth_login"):
        identifier = login_request.email or login_request.username or ""
        employee = await employee_service.authenticate(db, identifier, login_request.password)
        if employee is None:
            auth_login_failed_counter.add(1, {"reason": "invalid_credentials"})
            raise _invalid("Invalid credentials")

        access_token = create_access_token(
            data={"sub": str(employee.id), "role": employee.role.name},
            expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        await employee_service.record_login(db, employee)
        auth_login_counter.add(1, {"role": employee.role.name})

        profile = _profile(employee)
        return _success({
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user": profile,
            "role": employee_service.serialize_role(employee.role),
            "permissions": profile["permissions"],
        })


@router.get("/me")
async def get_current_user_profile(current_user: Employee = Depends(get_current_user)):
    with trace_operation("auth_get_profile"):
        return _success(_profile(current_user))


@router.get("/profile")
async def get_profile(current_user: Employee = Depends(get_current_user)):
    return _success(_profile(current_user))


@router.put("/password")
async def change_password(
    body: PasswordChange,
    current_user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db_dependency),
):
    with trace_operation("auth_change_password"):
        await employee_service.change_password(db, current_user, body.current_password, body.new_password)
        return _success({"message": "Password updated successfully"})


@router.post("/logout")
async def logout(_current_user: Employee = Depends(get_current_user)):
    """Stateless logout; the client discards its token."""
    return _success({"message": "Successfully logged out"})
