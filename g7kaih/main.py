"""
G7KAIH — Daily Activity Pipeline Backend
FastAPI entry point.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from g7kaih.core.config import settings
from g7kaih.core.errors import PipelineError, pipeline_error_handler, unexpected_error_handler
from g7kaih.routers import aktivitas, guruwali, kegiatan, orangtua, teacher

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    description="Daily habit activity submission, validation and reporting",
    version="1.0.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PipelineError, pipeline_error_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

# Include routers
app.include_router(kegiatan.router)
app.include_router(aktivitas.router)
app.include_router(guruwali.router)
app.include_router(orangtua.router)
app.include_router(teacher.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
        "timezone": settings.TIMEZONE,
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy", "auth_mode": settings.AUTH_MODE}
