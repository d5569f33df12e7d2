from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/database", summary="Ticket store health probe")
async def ping_database(request: Request) -> dict[str, str]:
    tester = getattr(request.app.state, "postgres_tester", None)
    if tester is None:
        return {"status": "ok", "backend": "memory"}
    if not await tester.is_healthy():
        raise HTTPException(status_code=503, detail="Ticket database unavailable")
    return {"status": "ok", "backend": "postgres"}
