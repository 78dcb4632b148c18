from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from srp.config import CORS_ORIGINS, STATIC_DATA_DIR
from srp.db.db import init_db
from srp.routers import fleets, killmail, payment, ships, srp_requests, user
from srp.services.ship_catalog import ship_catalog
from srp.services.ship_classes import ship_class_table
from srp.utils.logging_config import setup_logging

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # Reference data is read once; refresh by restarting or calling reload()
    ship_class_table.load(STATIC_DATA_DIR)
    ship_catalog.load(STATIC_DATA_DIR)
    logger.info("SRP backend started")
    yield


app = FastAPI(title="SRP", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(user.router, tags=["Users"])
app.include_router(ships.router, prefix="/ships", tags=["Ships"])
app.include_router(killmail.router, prefix="/killmail", tags=["Killmail"])
app.include_router(srp_requests.router, prefix="/srp-requests", tags=["SRP Requests"])
app.include_router(fleets.router, prefix="/fleets", tags=["Fleets"])
app.include_router(payment.router, prefix="/payment", tags=["Payment"])


@app.get("/")
def root():
    return {"status": "ok"}
