import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from app.core import get_db
from app.core.rate_limit import LOGIN_LIMIT, REGISTER_LIMIT, limiter
from app.core.security import create_access_token, hash_password, verify_password
from app.api.deps import get_current_user
from app.models import User
from app.schemas import Token, UserCreate, UserLogin, UserResponse

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id or 0,
        email=user.email,
        full_name=user.full_name,
        is_admin=user.is_admin,
    )


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit(REGISTER_LIMIT)
def register(request: Request, body: UserCreate, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=400, detail="User already exists")
    user = User(
        email=email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name.strip(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("User registered: id=%s", user.id)
    return _user_response(user)


@router.post("/login", response_model=Token)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, body: UserLogin, db: Session = Depends(get_db)):
    user = db.exec(select(User).where(User.email == body.email.strip().lower())).first()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return Token(access_token=create_access_token(user.id))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return _user_response(user)
