import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.db import AsyncSessionLocal, create_tables
from .seed import seed_demo_data
from .whatsapp import router as whatsapp_router


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Barberbot WhatsApp Booking Backend")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list or ["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(whatsapp_router)


@app.on_event("startup")
async def on_startup():
    await create_tables()
    if settings.seed_demo_data:
        async with AsyncSessionLocal() as session:
            await seed_demo_data(session)
        logger.info(f"Demo shop seeded on instance {settings.demo_instance_id}")


@app.get("/health")
async def healthcheck():
    return {"status": "ok"}
