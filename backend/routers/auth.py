# backend/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, AUTHORIZED_DOMAIN, SECRET_KEY
from database import get_db
import models
import schemas
from schemas import Token, TokenData

router = APIRouter(
    tags=["Authentication"],
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# --- JWT Functions ---

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def authenticate_school_user(email: str, db: Session) -> models.Teacher | None:
    # 1. Domain Check
    if not email.endswith(f"@{AUTHORIZED_DOMAIN}"):
        return None # Domain unauthorized

    # 2. Only known, active staff may sign in
    teacher = db.query(models.Teacher).filter(models.Teacher.email == email).first()
    if not teacher or not teacher.is_active:
        return None
    return teacher

# --- Endpoint Definitions ---

# The identity provider has already verified the address; the form's username carries it.
@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    user = authenticate_school_user(form_data.username, db)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized email domain or user not found.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": user.email, "role": user.role.value})
    return {"access_token": access_token, "token_type": "bearer"}

# --- Dependency to Get Current User ---
async def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
        token_data = TokenData(email=email, role=payload.get("role", models.UserRole.TEACHER))
    except (JWTError, ValueError):
        raise credentials_exception

    user = db.query(models.Teacher).filter(models.Teacher.email == token_data.email).first()
    if user is None or not user.is_active:
        raise credentials_exception
    return user

# --- Role-Based Access Control Dependency ---
def require_roles(*roles: models.UserRole):
    async def checker(current_user: models.Teacher = Depends(get_current_user)):
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation requires elevated privileges."
            )
        return current_user
    return checker

require_staff = require_roles(models.UserRole.ADMIN, models.UserRole.COORDINATOR)
require_admin = require_roles(models.UserRole.ADMIN)


@router.get("/me", response_model=schemas.Teacher)
async def read_current_user(current_user: models.Teacher = Depends(get_current_user)):
    return current_user
