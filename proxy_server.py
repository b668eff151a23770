# proxy_server.py
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from gateway import (
    ClientRequest,
    Config,
    CredentialPool,
    HTTPClient,
    LoggerManager,
    ProxyOrchestrator,
    ReferenceDataError,
    ResponseCache,
    SecretGate,
    TimetableStore,
    load_credentials_from_env,
    preload_timetables,
)
from gateway.timetable import parse_weekday

UNGATED_PATHS = {"/up"}


def create_app(
    orchestrator: ProxyOrchestrator,
    gate: SecretGate,
    timetables: Optional[TimetableStore] = None,
) -> FastAPI:
    """Build the HTTP surface around an already wired orchestrator."""
    timetables = timetables or TimetableStore()

    app = FastAPI(title="Caltrain Gateway", version="1.0.0", docs_url=None, redoc_url=None)
    app.state.orchestrator = orchestrator
    app.state.timetables = timetables

    @app.middleware("http")
    async def require_gateway_secret(request: Request, call_next):
        if request.url.path in UNGATED_PATHS or gate.allows(
            request.headers.get(gate.header)
        ):
            return await call_next(request)
        LoggerManager.warn(f"Rejected unauthenticated request - path={request.url.path}")
        return PlainTextResponse("Unauthorized", status_code=401)

    app.add_middleware(GZipMiddleware, minimum_size=Config.CG_GZIP_MIN_SIZE)

    @app.get("/up", response_class=PlainTextResponse)
    def up() -> str:
        return "OK"

    @app.get("/status")
    def status() -> dict:
        collection = timetables.get()
        return {
            "requests": orchestrator.counter.snapshot(),
            "pool": orchestrator.pool.get_status(),
            "cache_entries": len(orchestrator.cache),
            "in_flight": orchestrator.fetcher.in_flight(),
            "timetables": len(collection) if collection is not None else 0,
        }

    @app.get("/timetable/departures")
    def departures(stop_id: Optional[str] = None, weekday: Optional[str] = None):
        collection = timetables.get()
        if collection is None:
            return JSONResponse(status_code=404, content={"detail": "Timetables not loaded"})

        day = None
        if weekday:
            day = parse_weekday(weekday)
            if day is None:
                return JSONResponse(
                    status_code=400, content={"detail": f"Unknown weekday: {weekday}"}
                )

        by_stop = collection.departures_by_stop(day)
        if stop_id is not None:
            return {"stopId": stop_id, "departures": by_stop.get(stop_id, [])}
        return by_stop

    # Sync handler: runs in the worker thread pool, one thread per request.
    @app.get("/{path:path}")
    def proxy(path: str, request: Request) -> Response:
        result = orchestrator.handle(
            ClientRequest(path="/" + path, params=request.query_params.multi_items())
        )

        headers = {}
        if result.cache_status:
            headers["X-Cache"] = result.cache_status
        if result.collapsed:
            headers["X-Collapsed"] = "TRUE"
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.content_type,
            headers=headers,
        )

    return app


def main() -> None:
    LoggerManager.init()

    values = load_credentials_from_env()
    LoggerManager.info(f"Loaded {len(values)} API keys from environment variables.")
    if not values:
        raise RuntimeError(
            f"No API keys found in environment variables "
            f"{Config.CG_CREDENTIAL_ENV_PREFIX}1, {Config.CG_CREDENTIAL_ENV_PREFIX}2, etc."
        )

    pool = CredentialPool.from_values(
        values, Config.CG_CREDENTIAL_RATE, Config.CG_CREDENTIAL_BURST
    )
    cache = ResponseCache(Config.CG_CACHE_TTL, Config.CG_CACHE_SWEEP_INTERVAL)
    http_client = HTTPClient()

    timetables = TimetableStore()
    if Config.CG_TIMETABLE_PRELOAD:
        try:
            timetables.set(preload_timetables(pool, http_client))
            LoggerManager.info("Timetables loaded successfully")
        except ReferenceDataError as e:
            LoggerManager.warn(f"Failed to load timetables: {e}")

    orchestrator = ProxyOrchestrator(pool, cache, http_client)
    gate = SecretGate(Config.CG_GATEWAY_SECRET, Config.CG_GATEWAY_SECRET_HEADER)
    app = create_app(orchestrator, gate, timetables)

    cache.start()
    LoggerManager.info(f"Caltrain Gateway running on {Config.CG_HOST}:{Config.CG_PORT}...")
    try:
        uvicorn.run(
            app,
            host=Config.CG_HOST,
            port=Config.CG_PORT,
            log_level=Config.CG_LOG_LEVEL.lower(),
        )
    finally:
        cache.stop()
        http_client.close()


if __name__ == "__main__":
    main()
