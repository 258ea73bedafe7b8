
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from .routers import documents, images, signatures, usage
from .config import configure_logging
from .db import init_db
from .engine.errors import (
    FieldNotFound, InvalidTransition, ItemNotFound, MalformedDocument,
    PageIndexOutOfRange, PdfDeskError, QuotaExceeded, UnsupportedFormat,
)

app = FastAPI(title="PDF Desk API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Original-Size", "X-Compressed-Size", "X-Saved-Percent"],
)

# most specific first
ERROR_STATUS = (
    (UnsupportedFormat, 415),
    (QuotaExceeded, 429),
    (PageIndexOutOfRange, 422),
    (ItemNotFound, 404),
    (FieldNotFound, 404),
    (InvalidTransition, 409),
    (MalformedDocument, 400),
)

def status_for(exc: PdfDeskError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 400

@app.exception_handler(PdfDeskError)
async def engine_error_handler(request: Request, exc: PdfDeskError):
    status = status_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)})

@app.on_event("startup")
def on_startup():
    configure_logging()
    init_db()

app.include_router(documents.router, prefix="/api/documents", tags=["documents"])
app.include_router(images.router, prefix="/api/images", tags=["images"])
app.include_router(signatures.router, prefix="/api/signatures", tags=["signatures"])
app.include_router(usage.router, prefix="/api/usage", tags=["usage"])

@app.get("/")
def root():
    return {"ok": True, "service": "pdfdesk"}
