from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy.orm import Session
from storefront.api.deps import get_db
from storefront.core.auth import Identity, get_current_identity
from storefront.core.config import settings
from storefront.db.models import User
from storefront.schemas import UserRead, ProfileUpdate
from storefront.services.storage import upload_bytes, file_ext

router = APIRouter()

def _me(identity: Identity, db: Session) -> User:
    user = db.get(User, identity.user_id)
    if not user: raise HTTPException(status_code=401, detail="User not found")
    return user

@router.get("/me", response_model=UserRead)
def get_me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return _me(identity, db)

@router.patch("/me", response_model=UserRead)
def update_me(payload: ProfileUpdate, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    user = _me(identity, db)
    for k, v in payload.model_dump(exclude_unset=True).items(): setattr(user, k, v)
    db.add(user); db.commit(); db.refresh(user)
    return user

@router.post("/me/avatar", response_model=UserRead)
async def upload_avatar(file: UploadFile = File(...), identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    user = _me(identity, db)
    content = await file.read()
    _, url = upload_bytes(settings.AVATARS_BUCKET, str(user.id), content, file.content_type or "application/octet-stream", ext=file_ext(file.filename))
    user.avatar_url = url
    db.add(user); db.commit(); db.refresh(user)
    return user
