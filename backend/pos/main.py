"""
# `pos/main.py` - Application entry point

## Overview
Builds the FastAPI app: CORS, routers, the `PosError` exception handler, logging,
and the background scheduler.

---

## Routers
- `/inventory`        item lookup and management
- `/pos`              cart, tenders, checkout
- `/reports`          sales reports (managers)
- `/payment-methods`  tender methods offered at the register

All routes require a Firebase ID token (`pos.core.security`).

---

## Errors
Every `PosError` is rendered as `{"code", "message", "retryable", ...}` with the
status code the error class declares (409 validation, 422 bad input, 423 locked,
503 persistence).

---

## Background scheduler
- **Library:** APScheduler (`AsyncIOScheduler`)
- **Job:** `prune_idle_sessions`, drops sales idle longer than `SESSION_IDLE_MINUTES`
- **Period:** every 10 minutes
"""
import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pos.config import get_settings
from pos.core.deps import get_registry
from pos.core.errors import PosError
from pos.routers import inventory, payment_methods, reports
from pos.routers import pos as register

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("pos.main")


def prune_idle_sessions() -> int:
    return get_registry().prune_idle(timedelta(minutes=settings.session_idle_minutes))


scheduler = AsyncIOScheduler()

app = FastAPI(
    title="Mobile POS API",
    description="Cart pricing, multi-tender payments and checkout for a mobile point of sale.",
    version="1.0.0",
    debug=settings.debug,
    redirect_slashes=False,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(inventory.router)
app.include_router(register.router)
app.include_router(reports.router)
app.include_router(payment_methods.router)


@app.on_event("startup")
async def _startup_scheduler():
    if not scheduler.running:
        scheduler.start()
    scheduler.add_job(
        prune_idle_sessions,
        "interval",
        minutes=10,
        id="prune-idle-sessions",
        replace_existing=True,
    )


@app.on_event("shutdown")
async def _shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pos.main:app", host="0.0.0.0", port=8000, reload=True)
