import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import db
from core.records import RecordStoreError
from items import router as items_router
from users import router as users_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Open the store once per process.
    await db.init_store()
    try:
        yield
    finally:
        await db.close_store()


def _cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ALLOWED_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(items_router.router, tags=["items"])
app.include_router(users_router.router, tags=["users"])


@app.exception_handler(RecordStoreError)
async def record_store_error_handler(_: Request, exc: RecordStoreError) -> JSONResponse:
    logger.error("store_error operation=%s table=%s error=%s", exc.operation, exc.table, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Database operation failed.",
            "operation": exc.operation,
            "table": exc.table,
        },
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "edge records api"}
