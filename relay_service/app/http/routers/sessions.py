from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

router = APIRouter(prefix="/sessions", tags=["sessions"])


class Session(BaseModel):
    conversation_id: str = Field(..., description="The conversation the session belongs to.")
    authenticated: bool
    remote_agent_url: Optional[str] = None


@router.get("/{conversation_id}", response_model=Session)
async def get_session(conversation_id: str, request: Request):
    """Show whether a conversation has a stored sign-in. Tokens are never returned."""
    relay_svc = request.app.state.relay_svc
    session = await relay_svc.get_session(conversation_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.delete("/{conversation_id}", status_code=204)
async def delete_session(conversation_id: str, request: Request):
    """Sign a conversation out by deleting its stored session."""
    relay_svc = request.app.state.relay_svc
    success = await relay_svc.delete_session(conversation_id)
    if not success:
        raise HTTPException(status_code=404, detail="Session not found")
