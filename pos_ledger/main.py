from fastapi import FastAPI
from contextlib import asynccontextmanager

from pos_ledger.config import get_settings
from pos_ledger.database import engine
from pos_ledger.logging_config import setup_logging
from pos_ledger import models

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)
    # Create tables
    models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Point-of-sale ledger: line items, split payments and refunds for a mobile detailing business",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "pos-ledger-api"}


from pos_ledger.routers import transactions, refunds  # noqa: E402
app.include_router(transactions.router, prefix="/api/v1/transactions", tags=["transactions"])
app.include_router(refunds.router, prefix="/api/v1/transactions", tags=["refunds"])
