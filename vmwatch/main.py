# vmwatch/main.py
import asyncio
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vmwatch.api import report, status, vms
from vmwatch.config import settings
from vmwatch.models import utcnow

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("vmwatch")

app = FastAPI(title="VM Watch Controller API")

app.include_router(report.router)
app.include_router(vms.router)
app.include_router(status.router)


@app.exception_handler(RequestValidationError)
async def validation_failed(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.get("/health")
def liveness():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


async def stale_check_loop():
    """In-process alternative to the Celery beat schedule."""
    from vmwatch.tasks.jobs import run_stale_check

    while True:
        try:
            await asyncio.to_thread(run_stale_check)
        except Exception as e:
            logger.exception("Stale VM check failed: %s", e)
        await asyncio.sleep(settings.stale_check_interval)


@app.on_event("startup")
async def startup_event():
    if settings.stale_check_in_process:
        asyncio.create_task(stale_check_loop())
        logger.info("In-process stale VM check scheduled every %ss", settings.stale_check_interval)


if __name__ == "__main__":
    uvicorn.run("vmwatch.main:app", host="0.0.0.0", port=settings.api_port, log_level="info")
