from dataclasses import dataclass
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from storefront.security.utils import decode_token

security = HTTPBearer(auto_error=False)

@dataclass(frozen=True)
class Identity:
    """The authenticated caller, passed explicitly into every workflow."""
    user_id: int
    email: str
    is_admin: bool = False

def get_current_identity(creds: HTTPAuthorizationCredentials = Depends(security)) -> Identity:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid access token")
    return Identity(user_id=int(payload["sub"]), email=payload.get("email", ""), is_admin=bool(payload.get("adm")))

def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return identity
