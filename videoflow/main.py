import os
import time
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Module-level config in the imports below reads the environment.
load_dotenv()

import uvicorn
from fastapi import FastAPI

from . import metrics
from . import run_limiter
from .providers import GENERATION_API_BASE
from .workflow.routes import template_router, workflow_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Workflow worker starting up...")
    metrics.set_gauge("start_time", time.time())
    yield
    logger.info("Workflow worker shutting down...")


app = FastAPI(lifespan=lifespan)
app.include_router(workflow_router)
app.include_router(template_router)


@app.get("/health")
def health_check():
    """Verify the worker is running and the generation API is configured."""
    api_key = os.environ.get("GENERATION_API_KEY", "")
    return {
        "status": "ok",
        "generation_api_base": GENERATION_API_BASE,
        "generation_api_key_set": bool(api_key),
        "active_runs": run_limiter.get_active_runs(),
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    metrics.set_gauge("active_runs", run_limiter.get_active_runs())
    return metrics.get_snapshot()


if __name__ == "__main__":
    uvicorn.run(
        "videoflow.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
