# relish/app/main.py
from __future__ import annotations

import logging
import sys

from fastapi import FastAPI

from relish import __version__
from relish.app.routers.entities import router as entities_router
from relish.app.routers.pipelines import router as pipelines_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title="Relish Ingestion API", version=__version__)

app.include_router(pipelines_router)
app.include_router(entities_router)


@app.get("/health")
def health():
    return {"ok": True}
