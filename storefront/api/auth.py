from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_db
from storefront.db.models import User, RefreshToken
from storefront.schemas import RegisterPayload, LoginPayload, TokenPair, RefreshRequest, UserRead
from storefront.security.utils import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    token_sha256,
    now_utc,
    decode_token,
)

router = APIRouter()  # main.py mounts at /auth


def _issue_tokens(db: Session, user: User) -> TokenPair:
    access, _ = create_access_token(user.id, user.email, user.is_admin)
    refresh, jti, exp = create_refresh_token(user.id)
    db.add(
        RefreshToken(
            user_id=user.id,
            jti=jti,
            token_hash=token_sha256(refresh),
            expires_at=exp,
            revoked=False,
            created_at=now_utc(),
        )
    )
    db.commit()
    return TokenPair(access_token=access, refresh_token=refresh)


def _refresh_claims(token: str) -> dict:
    try:
        claims = decode_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if claims.get("type") != "refresh" or not claims.get("jti"):
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return claims


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db: Session = Depends(get_db)) -> Any:
    # Prevent duplicate email
    if db.query(User).filter(User.email == str(payload.email)).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=str(payload.email),
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        is_admin=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/login", response_model=TokenPair)
def login(payload: LoginPayload, db: Session = Depends(get_db)) -> TokenPair:
    user = db.query(User).filter(User.email == str(payload.email)).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _issue_tokens(db, user)


@router.post("/refresh", response_model=TokenPair)
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)) -> TokenPair:
    claims = _refresh_claims(payload.refresh_token)

    rt = db.query(RefreshToken).filter(RefreshToken.jti == claims["jti"]).first()
    if (not rt or rt.revoked or rt.expires_at < now_utc()
            or str(rt.user_id) != claims.get("sub") or rt.token_hash != token_sha256(payload.refresh_token)):
        raise HTTPException(status_code=401, detail="Refresh token not valid")

    # rotate: the used refresh token is spent
    rt.revoked = True
    db.add(rt)
    return _issue_tokens(db, rt.user)


@router.post("/logout")
def logout(payload: RefreshRequest, db: Session = Depends(get_db)) -> dict:
    claims = _refresh_claims(payload.refresh_token)
    rt = db.query(RefreshToken).filter(RefreshToken.jti == claims["jti"]).first()
    if rt and not rt.revoked:
        rt.revoked = True
        db.add(rt)
        db.commit()
    return {"status": "ok"}
