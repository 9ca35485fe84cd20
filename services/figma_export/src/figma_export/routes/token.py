"""Design-service token management API."""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from common.logging import get_logger

from ..dependencies import get_token_provider, get_transport
from ..errors import TokenValidationError
from ..tokens import FigmaTokenProvider, masked

logger = get_logger(__name__)

router = APIRouter(prefix="/api/figma", tags=["figma"])


class TokenStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    configured: bool
    masked_value: Optional[str] = Field(default=None, alias="maskedValue")


class TokenUpdateRequest(BaseModel):
    token: str = Field(min_length=1)


@router.get("/token", response_model=TokenStatus, response_model_by_alias=True)
async def get_token_status(tokens: FigmaTokenProvider = Depends(get_token_provider)) -> TokenStatus:
    token = tokens.get_token()
    return TokenStatus(configured=bool(token), masked_value=masked(token))


@router.put("/token", response_model=TokenStatus, response_model_by_alias=True)
async def update_token(
    body: TokenUpdateRequest,
    tokens: FigmaTokenProvider = Depends(get_token_provider),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> TokenStatus:
    """Validate a new token against the service, then store it."""
    token = body.token.strip()
    try:
        await tokens.ensure_valid(token, transport=transport)
    except TokenValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not tokens.update_token(token):
        raise HTTPException(status_code=500, detail="Failed to store Figma token")
    return TokenStatus(configured=True, masked_value=masked(token))


__all__ = ["router"]
