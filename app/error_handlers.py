from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
from domain.errors import DocumentMissing, JobNotFound

logger = logging.getLogger(__name__)

def attach_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(JobNotFound)
    async def _job_not_found(request: Request, exc: JobNotFound):
        return JSONResponse(status_code=404, content={"detail": "job not found"})

    @app.exception_handler(DocumentMissing)
    async def _document_missing(request: Request, exc: DocumentMissing):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
