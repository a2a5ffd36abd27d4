from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.get("/readyz")
async def readyz(request: Request):
    """Store: can read state for a dummy conversation."""
    svc = request.app.state.relay_svc
    try:
        _ = await svc.store.get("_readiness")
    except Exception as e:
        return {"ready": False, "store": False, "error": str(e)}
    return {"ready": True, "store": True}
