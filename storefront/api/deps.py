from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from typing import Optional

from shared.core import set_request_context
from storefront.application.service import OrderService
from storefront.auth_local import Identity, decode_access_token, identity_from_claims
from storefront.infrastructure.db import get_db

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Identity:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    claims = decode_access_token(credentials.credentials)
    identity = identity_from_claims(claims) if claims else None
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    set_request_context(user_id=identity.user_id)
    return identity


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return identity


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)
