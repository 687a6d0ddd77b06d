import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safemeds.core.config import settings
from safemeds.db.database import AsyncSessionLocal, init_db
from safemeds.medications.base import default_services
from safemeds.profiles.store import ProfileStore
from safemeds.routes import medicines, profile, scan
from safemeds.scans.pipeline import ScanController

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SafeMeds API",
    version="1.0.0",
    description="Scan a medication label and check it against your health profile",
)

# ---- CORS Setup ----
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Startup / Shutdown ----
@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Database initialized.")
    if getattr(app.state, "controller", None) is None:
        store = ProfileStore(AsyncSessionLocal)
        app.state.controller = await ScanController.start(default_services(), store)
    logger.info("Scan controller ready in state %s", app.state.controller.state.value)

@app.on_event("shutdown")
async def on_shutdown():
    logger.info("Shutting down SafeMeds API...")

# ---- Health Check ----
@app.get("/", tags=["system"])
async def health_check():
    return {"status": "ok", "service": "SafeMeds API"}

# ---- Register Routes ----
app.include_router(profile.router, prefix="/profile", tags=["Profile"])
app.include_router(scan.router, prefix="/scan", tags=["Scan"])
app.include_router(medicines.router, prefix="/medicines", tags=["OpenFDA-medicines"])

# ---- Run Locally ----
if __name__ == "__main__":
    uvicorn.run("safemeds.main:app", host="0.0.0.0", port=8000, reload=True)
