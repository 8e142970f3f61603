"""
Repair Bay: a small damaged-system diagnostic game served over HTTP.

Container Notes:
- Listens on ${HOST}:${PORT} (default 0.0.0.0:3000).
- No files are written to disk; request logs go to stdout as structured JSON lines.
- Sessions are in memory only and reset on restart.

Run: python -m repairbay
Example: curl -i http://localhost:3000/status && curl -i http://localhost:3000/repair-bay
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from .service import DiagnosticService, RepairBayError


# --- Config ---
class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"


def get_settings() -> Settings:
    env = {"host": os.getenv("HOST"), "port": os.getenv("PORT"), "log_level": os.getenv("LOG_LEVEL")}
    return Settings(**{k: v for k, v in env.items() if v is not None})


def stdlib_level(log_level: str) -> int:
    # uvicorn also accepts "trace", which stdlib logging does not know
    return getattr(logging, log_level.upper(), logging.DEBUG)


# --- Logging ---
class StructuredLogger:
    def log(self, ts, method, path, status, latency_ms, user_agent, client_ip, req_id):
        log_obj = {
            "ts": ts,
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "user_agent": user_agent,
            "client_ip": client_ip,
            "req_id": req_id,
        }
        print(json.dumps(log_obj), flush=True)

logger = StructuredLogger()

class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        req_id = request.headers.get("X-Req-Id") or str(uuid.uuid4())
        response = await call_next(request)
        latency_ms = int((time.time() - start) * 1000)
        ts = datetime.now(timezone.utc).isoformat()
        user_agent = request.headers.get("user-agent", "")
        logger.log(ts, request.method, request.url.path, response.status_code, latency_ms,
                   user_agent, get_client_ip(request), req_id)
        response.headers["X-Req-Id"] = req_id
        return response


# --- Utility Functions ---
def get_client_ip(request: Request) -> str:
    return request.client.host if request.client else ""

def get_service(request: Request) -> DiagnosticService:
    return request.app.state.service


# --- App ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.ready = True
    yield
    print("[Shutdown] Draining, readiness off.", flush=True)
    app.state.ready = False


def create_app(service: Optional[DiagnosticService] = None) -> FastAPI:
    """Build an app with its own session store."""
    app = FastAPI(title="Repair Bay", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.service = service or DiagnosticService()
    app.state.ready = True
    app.add_middleware(LoggingMiddleware)

    @app.exception_handler(RepairBayError)
    async def repair_bay_error(request: Request, exc: RepairBayError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    # --- Health & Basics ---
    @app.get("/healthz")
    async def healthz():
        """Health check."""
        return {"status": "ok"}

    @app.get("/ready")
    async def ready(request: Request):
        """Readiness check."""
        return {"status": "ready" if request.app.state.ready else "not ready"}

    # --- Diagnostics ---
    @app.get("/status", response_model=Dict[str, str])
    async def status(request: Request, service: DiagnosticService = Depends(get_service)):
        """Assign a random damaged system to the caller."""
        return service.check_status(get_client_ip(request))

    @app.get("/repair-bay", response_class=HTMLResponse)
    async def repair_bay(request: Request, service: DiagnosticService = Depends(get_service)):
        """Return HTML with the repair code for the caller's damaged system."""
        return HTMLResponse(content=service.repair_bay_page(get_client_ip(request)))

    @app.post("/teapot")
    async def teapot():
        """Always 418."""
        return PlainTextResponse("I'm a teapot", status_code=418)

    return app


app = create_app()


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(level=stdlib_level(settings.log_level), format="%(levelname)s:     %(name)s: %(message)s")
    uvicorn.run("repairbay.app:app", host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
