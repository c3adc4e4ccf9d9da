# reconboard/main.py
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import router as auth_router
from .config import settings
from .errors import SourceError
from .router import api_router, router

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Reconboard",
    description="Aggregates host, leak, web vulnerability and port scan intelligence for a domain or IP.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SourceError)
async def source_error_handler(request: Request, exc: SourceError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code)


@app.get("/health")
async def health():
    return {"status": "ok", "api_keys": settings.configured_keys()}


app.include_router(auth_router)
app.include_router(router)
app.include_router(api_router)

if __name__ == "__main__":
    uvicorn.run("reconboard.main:app", host="0.0.0.0", port=8000, reload=True)
