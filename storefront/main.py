# storefront/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from storefront.data.database import Base, SessionLocal, engine
from storefront.api.routers import admin, carts, checkout, health, orders
from storefront.tasks.reaper import build_reaper
from storefront.utils.logging import get_logger

# import all models before create_all
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db():
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)


def repair_reservations():
    # crash between reservation change and status write, fix it before serving
    db = SessionLocal()
    try:
        build_reaper(db).repair()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    repair_reservations()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Checkout Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
