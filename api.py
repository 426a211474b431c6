# api.py
import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

print("[API] Booting FastAPI...")

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from pydantic import BaseModel, Field

_loaded = load_dotenv()
print(f"[API] .env loaded: {_loaded}")

from radar.settings import env_config
from radar.core.analyze import analyze_token
from radar.core.context import RadarContext, build_context
from radar.core.messages import MessageRouter
from radar.core.monitor import RecurringTimer, WatchlistMonitor
from radar.errors import MergeIncomplete, RadarError, ValidationError
from radar.utils.extract import extract_contract_addresses

print("[API] Imports OK")


class ExtractBody(BaseModel):
    text: str = ""


class BatchJob(BaseModel):
    chain: Optional[str] = None
    addresses: List[str]
    concurrency: int = Field(default=2, ge=1, le=8)
    use_cache: bool = True


def _raise_for(e: Exception, where: str):
    if isinstance(e, ValidationError):
        print(f"[API] {where} ValidationError -> {e}")
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, MergeIncomplete):
        print(f"[API] {where} no source answered -> {e.errors}")
        raise HTTPException(status_code=502, detail=str(e))
    print(f"[API] {where} ERROR -> {e!r}")
    raise HTTPException(status_code=500, detail=str(e))


def create_app(context_factory: Callable[[], RadarContext] = build_context,
               poll_interval: Optional[float] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context_factory()
        monitor = WatchlistMonitor(ctx)
        interval = poll_interval if poll_interval is not None else env_config()["poll_interval"]
        timer = RecurringTimer(monitor.poll_once, interval=interval)
        app.state.ctx = ctx
        app.state.router = MessageRouter(ctx, monitor=monitor, timer=timer)
        timer.start()
        print("[API] Startup complete.")
        try:
            yield
        finally:
            await timer.stop()
            ctx.close()
            print("[API] Shutdown complete.")

    app = FastAPI(title="Token Rug Radar API", version="0.4.0", lifespan=lifespan)
    print("[API] FastAPI instance created.")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    print("[API] CORS middleware registered.")

    api = APIRouter(prefix="/api")

    @api.get("/health")
    async def health(request: Request):
        print("[API] GET /api/health")
        status = await request.app.state.router.handle({"type": "GET_MONITOR_STATUS"})
        return {"ok": True, "monitor": status.get("monitor"), "timer": status.get("timer")}

    @api.post("/message")
    async def message(request: Request, body: Dict[str, Any] = Body(...)):
        print(f"[API] POST /api/message type={body.get('type')}")
        return await request.app.state.router.handle(body)

    @api.get("/risk/{address}")
    async def risk(request: Request, address: str, chain: Optional[str] = Query(default=None),
                   use_cache: bool = Query(default=True)):
        print(f"[API] GET /api/risk/{address}?chain={chain} -> start")
        try:
            record, cached = await analyze_token(request.app.state.ctx, chain, address, use_cache=use_cache)
        except RadarError as e:
            _raise_for(e, "/risk")
        print(f"[API] /risk OK address={record.address} chain={record.chain} score={record.score} "
              f"level={record.risk_level} cached={cached}")
        return {**record.to_dict(), "cached": cached}

    @api.post("/batch")
    async def batch(request: Request, job: BatchJob):
        print(f"[API] POST /api/batch -> chain={job.chain} count={len(job.addresses)} conc={job.concurrency}")
        if not job.addresses:
            raise HTTPException(status_code=400, detail="addresses list is empty")
        ctx = request.app.state.ctx
        gate = asyncio.Semaphore(job.concurrency)

        async def work(addr: str) -> Dict[str, Any]:
            async with gate:
                try:
                    record, cached = await analyze_token(ctx, job.chain, addr, use_cache=job.use_cache)
                except RadarError as e:
                    print(f"[API][WORK] FAIL {addr} -> {e}")
                    return {"chain": job.chain, "address": addr, "error": str(e)}
                return {**record.to_dict(), "cached": cached}

        out = await asyncio.gather(*(work(a) for a in job.addresses))
        print(f"[API] /batch completed -> {len(out)} results")
        return {"count": len(out), "results": out}

    @api.post("/extract")
    async def extract(body: ExtractBody):
        found = extract_contract_addresses(body.text)
        print(f"[API] POST /api/extract -> {len(found)} address(es)")
        return {"count": len(found), "addresses": found}

    @api.get("/watchlist")
    async def watchlist_get(request: Request):
        return await request.app.state.router.handle({"type": "WATCHLIST_GET"})

    @api.post("/watchlist")
    async def watchlist_add(request: Request, token: Dict[str, Any] = Body(..., embed=True)):
        res = await request.app.state.router.handle({"type": "WATCHLIST_ADD", "payload": {"token": token}})
        if not res.get("success"):
            raise HTTPException(status_code=400, detail=res.get("error"))
        return res

    @api.delete("/watchlist/{chain}/{address}")
    async def watchlist_remove(request: Request, chain: str, address: str):
        return await request.app.state.router.handle(
            {"type": "WATCHLIST_REMOVE", "payload": {"address": address, "chain": chain}})

    @api.get("/settings")
    async def settings_get(request: Request):
        return await request.app.state.router.handle({"type": "SETTINGS_GET"})

    @api.patch("/settings")
    async def settings_update(request: Request, updates: Dict[str, Any] = Body(...)):
        res = await request.app.state.router.handle({"type": "SETTINGS_UPDATE", "payload": {"updates": updates}})
        if not res.get("success"):
            raise HTTPException(status_code=400, detail=res.get("error"))
        return res

    @api.delete("/settings")
    async def settings_reset(request: Request):
        return await request.app.state.router.handle({"type": "SETTINGS_RESET"})

    @api.delete("/cache")
    async def cache_clear(request: Request):
        print("[API] DELETE /api/cache")
        return await request.app.state.router.handle({"type": "CLEAR_CACHE"})

    app.include_router(api)
    print("[API] Router included.")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api:app", host="127.0.0.1", port=8000)
