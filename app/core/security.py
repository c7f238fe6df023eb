from typing import Optional
from fastapi import Header, HTTPException
from pydantic import BaseModel
from app.core.config import settings
from app.models.db_models import Role

class Actor(BaseModel):
    role: Role
    id: Optional[str] = None

async def verify_secret_token(x_secret_token: str = Header(None)):
    """
    Verify the shared secret sent by the gateway in front of this service.
    Skipped when no SECRET_KEY is configured (local development).
    """
    if not settings.SECRET_KEY:
        return True

    if x_secret_token != settings.SECRET_KEY:
        raise HTTPException(status_code=403, detail="Invalid secret token")
    return True

async def get_actor(
    x_actor_role: str = Header(None),
    x_actor_id: str = Header(None),
) -> Actor:
    """
    Identity comes from the upstream auth layer as headers; this service
    does not authenticate users itself.
    """
    if not x_actor_role:
        raise HTTPException(status_code=401, detail="Missing actor role")
    try:
        role = Role(x_actor_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown actor role: {x_actor_role}")
    if role != Role.ADMIN and not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing actor id")
    return Actor(role=role, id=x_actor_id or None)
