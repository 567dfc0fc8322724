import os
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from fencecalc.services.auth_service import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

TOKEN_ENVIRONMENTS = {"dev", "local", "test"}


class TokenRequest(BaseModel):
    user_id: str
    company_id: int
    role: Optional[str] = None


@router.post("/token")
def issue_token(payload: TokenRequest):
    # development helper; production tokens come from the identity provider
    if os.getenv("ENV", "dev").lower() not in TOKEN_ENVIRONMENTS:
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        token = create_access_token(
            user_id=payload.user_id,
            company_id=payload.company_id,
            role=payload.role,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"access_token": token, "token_type": "bearer"}
