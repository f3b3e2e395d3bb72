"""FastAPI application — REST API over the security ledger."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from secledger import __version__
from secledger.config import settings
from secledger.errors import InvalidArgument, LedgerError
from secledger.store import get_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = get_store()
    logger.info("secledger API starting (backend=%s)", store.name)
    yield


app = FastAPI(
    title="secledger",
    description="Per-user security ledger: devices, Face ID, buddy pairing, TOTP 2FA",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies and query strings share the InvalidArgument contract
    fields = sorted({".".join(str(p) for p in err["loc"][1:]) or str(err["loc"][0]) for err in exc.errors()})
    error = InvalidArgument(f"Invalid request field(s): {', '.join(fields)}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
def health():
    return {"ok": True, "backend": get_store().name}


# Import and include route modules
from secledger.api.routes import buddies, events as events_routes, security, two_factor  # noqa: E402

app.include_router(security.router)
app.include_router(buddies.router)
app.include_router(two_factor.router)
app.include_router(events_routes.router)
