import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from quickbarber import __version__
from quickbarber.config import settings
from quickbarber.database import Database, get_db
from quickbarber.logging_config import get_logger, setup_logging
from quickbarber.models import Barber, Booking, ChatSession, ServiceCatalog, WabaNumber
from quickbarber.routers import webhook
from quickbarber.services.dispatcher import WebhookDispatcher
from quickbarber.services.webhook_service import WebhookProcessor, whatsapp_sender_factory

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="QuickBarber API",
    description="WhatsApp booking assistant for barber shops",
    version=__version__,
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _is_webhook_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return _is_env_enabled(os.environ.get("WEBHOOK_WORKER_ENABLED"), default=True)


@app.on_event("startup")
async def startup() -> None:
    database = Database(settings.database_url, echo=settings.debug).open()
    database.create_all()
    processor = WebhookProcessor(database, whatsapp_sender_factory(settings))
    dispatcher = WebhookDispatcher(
        processor.process_payload,
        workers=settings.webhook_workers,
        queue_size=settings.webhook_queue_size,
    )
    app.state.database = database
    app.state.dispatcher = dispatcher
    if _is_webhook_worker_enabled():
        await dispatcher.start()
    logger.info("Application started", extra={"context": {"workers": dispatcher.running}})


@app.on_event("shutdown")
async def shutdown() -> None:
    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher is not None:
        await dispatcher.stop()
    database = getattr(app.state, "database", None)
    if database is not None:
        database.close()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "sessions": db.query(ChatSession).count(),
        "bookings": db.query(Booking).count(),
        "barbers": db.query(Barber).count(),
        "services": db.query(ServiceCatalog).count(),
        "waba_numbers": db.query(WabaNumber).count(),
    }
