from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import close_db_pool, init_db_pool
from .errors import register_error_handlers
from .limits import router as limits_router
from .logging_config import init_logging, request_context_middleware
from .transactions import router as transactions_router


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_db_pool()
    yield
    await close_db_pool()


init_logging(settings.log_level, settings.log_json)

app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.middleware("http")(request_context_middleware)
register_error_handlers(app)
app.include_router(transactions_router)
app.include_router(limits_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
