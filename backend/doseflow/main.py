import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doseflow.api.router import api_router
from doseflow.core.errors import DoseflowError
from doseflow.core.logging import setup_logging
from doseflow.core.settings import get_settings

settings = get_settings()
setup_logging(settings.log_format, settings.log_level)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

origins = [o.strip() for o in settings.allow_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DoseflowError)
async def doseflow_error_handler(request: Request, exc: DoseflowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Unhandled service error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


app.include_router(api_router, prefix=settings.api_prefix)
