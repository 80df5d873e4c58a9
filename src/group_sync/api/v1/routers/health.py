from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from group_sync.api.deps import ViewDep

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(view: ViewDep) -> JSONResponse:
    if not view.is_online:
        return JSONResponse(
            status_code=503,
            content={"status": "offline", "connection": view.connection_state.value},
        )
    return JSONResponse(content={"status": "ready"})
