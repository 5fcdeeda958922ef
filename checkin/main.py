# checkin/main.py
import logging

from fastapi import FastAPI

from checkin.api.v1.endpoints import questions
from checkin.api.v1.endpoints import site_config
from checkin.core.config import settings
from checkin.core.db import init_db

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

# Include API routers
app.include_router(questions.router, prefix=settings.API_V1_STR)
app.include_router(site_config.router, prefix=settings.API_V1_STR)


@app.on_event("startup")
def startup_event():
    """Create tables on startup"""
    logger.info("Starting check-in question service")
    init_db()


@app.get("/health")
def health_check():
    return {"status": "ok", "version": settings.VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("checkin.main:app", host=settings.HOST, port=settings.PORT)
