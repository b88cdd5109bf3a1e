"""
Error taxonomy for the activity pipeline.

Each error carries the HTTP status it maps to; routers let them propagate and
the handler registered in main.py renders them as {"error": message, ...}.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from g7kaih.utils.response import error_payload

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return error_payload(self.message, **self.extra)


class ValidationError(PipelineError):
    status_code = 400


class ForbiddenError(PipelineError):
    status_code = 403


class NotFoundError(PipelineError):
    status_code = 404


class ConflictError(PipelineError):
    status_code = 409


class AlreadySubmittedError(ConflictError):
    """The student already has an activity for this kegiatan today."""

    def __init__(self, last_submission: Optional[str] = None):
        super().__init__(
            "Aktivitas untuk kegiatan ini sudah dikirim hari ini. Silakan kembali besok.",
            lastSubmission=last_submission,
        )
        self.last_submission = last_submission


class UnexpectedError(PipelineError):
    status_code = 500


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_payload("Internal server error"))
