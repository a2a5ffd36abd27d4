import asyncio
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from relay_service.core.logging import logger
from relay_service.core.session import Turn
from relay_service.surfaces.ndjson import NdjsonSurface

router = APIRouter(prefix="/conversations", tags=["conversations"])


class TurnRequest(BaseModel):
    text: str = Field(..., description="The user's message.")
    token: Optional[str] = Field(None, description="Access token from the platform's sign-in, if any.")


@router.post("/{conversation_id}/messages")
async def post_message(conversation_id: str, request: Request, body: TurnRequest):
    logger.info(f"/conversations/{conversation_id}/messages called")
    relay_service = request.app.state.relay_svc
    surface = NdjsonSurface(conversation_id, supports_update=request.app.state.supports_update)
    turn = Turn(conversation_id=conversation_id, text=body.text, token=body.token)

    async def run_turn():
        try:
            await relay_service.handle_turn(turn, surface)
            surface.close()
        except Exception as e:
            logger.exception(f"Exception in turn: {e}")
            surface.close(error=str(e))

    task = asyncio.create_task(run_turn())

    async def directive_generator():
        try:
            async for chunk in surface.stream():
                yield chunk
        finally:
            # the turn keeps running if the client goes away; state is still persisted
            await asyncio.shield(task)

    return StreamingResponse(directive_generator(), media_type="application/x-ndjson")
