import logging
import os
from typing import Optional
from urllib.parse import quote

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .config import settings
from .errors import ErrorCode, StorageError, status_for
from .logging_utils import log_event, logging_middleware
from .message_store import MISSING
from .metrics import render_metrics
from .models import ErrorResponse, Message, MessageUpdate, SharedFile
from .storage import StorageService, UploadedBlob, get_storage


app = FastAPI(title="sharedrop")

# Attach logging middleware
app.middleware("http")(logging_middleware)


_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".txt": "text/plain; charset=utf-8",
    ".log": "text/plain; charset=utf-8",
}


# ---------- Startup ----------


@app.on_event("startup")
def on_startup() -> None:
    get_storage().files.ensure_dir()


# ---------- Helpers ----------


def is_ready(storage: StorageService) -> tuple[bool, str]:
    shared_dir = storage.files.shared_dir
    try:
        storage.files.ensure_dir()
    except OSError as e:
        return False, f"shared dir error: {e}"
    if not os.access(shared_dir, os.W_OK):
        return False, "shared dir not writable"
    return True, "ok"


def content_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return _CONTENT_TYPES.get(ext, "application/octet-stream")


def _annotate(request: Request, **fields) -> None:
    request.state.log_extra = getattr(request.state, "log_extra", {})
    request.state.log_extra.update(fields)


# ---------- Exception handlers ----------


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    _annotate(request, error_code=exc.code.value)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, code=exc.code.value).model_dump(),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log_event(
        logging.ERROR,
        "unexpected_error",
        method=request.method,
        path=request.url.path,
        error=repr(exc),
    )
    return JSONResponse(
        status_code=status_for(ErrorCode.UNEXPECTED),
        content=ErrorResponse(
            error="Internal server error", code=ErrorCode.UNEXPECTED.value
        ).model_dump(),
    )


# ---------- Health ----------


@app.get("/health/live")
def health_live():
    # always 200 once running
    return {"status": "ok"}


@app.get("/health/ready")
def health_ready(storage: StorageService = Depends(get_storage)):
    ok, msg = is_ready(storage)
    if not ok:
        raise HTTPException(status_code=503, detail=msg)
    return {"status": "ok"}


# ---------- Messages ----------


@app.get("/api/messages", response_model=list[Message], response_model_exclude_none=True)
def get_messages(storage: StorageService = Depends(get_storage)):
    return storage.list_messages()


@app.post("/api/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    request: Request,
    storage: StorageService = Depends(get_storage),
):
    # an unreadable body is treated as a message without text
    try:
        payload = await request.json()
    except (ValueError, RecursionError):
        payload = {}
    text = payload.get("text") if isinstance(payload, dict) else None

    saved = storage.post_text(text)
    _annotate(request, message_id=saved.id)
    return {"message": "Message received", "data": saved.to_record()}


@app.post("/api/messages/upload", status_code=status.HTTP_201_CREATED)
async def upload_message(
    request: Request,
    file: Optional[list[UploadFile]] = File(default=None),
    text: Optional[str] = Form(default=None),
    storage: StorageService = Depends(get_storage),
):
    uploads = file or []
    if len(uploads) > settings.MAX_UPLOAD_FILES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"At most {settings.MAX_UPLOAD_FILES} files per upload",
        )

    blobs = [
        UploadedBlob(
            content=await upload.read(),
            display_name=upload.filename,
            mimetype=upload.content_type,
        )
        for upload in uploads
    ]

    saved = storage.post_upload(text, blobs)
    files = [f.model_dump(by_alias=True) for f in saved.files or []]

    _annotate(request, message_id=saved.id, file_count=len(files))
    return {
        "message": "Message uploaded",
        "count": len(files),
        "files": files,
        "data": saved.to_record(),
    }


@app.patch("/api/messages/{message_id}")
def patch_message(
    message_id: str,
    request: Request,
    body: MessageUpdate,
    storage: StorageService = Depends(get_storage),
):
    provided = body.model_fields_set
    updated = storage.update_message(
        message_id,
        text=body.text if "text" in provided else MISSING,
        note=body.note if "note" in provided else MISSING,
    )
    _annotate(request, message_id=updated.id)
    return {"message": "Message updated", "data": updated.to_record()}


@app.delete("/api/messages/{message_id}")
def delete_message(
    message_id: str,
    request: Request,
    storage: StorageService = Depends(get_storage),
):
    removed = storage.delete_message(message_id)
    _annotate(request, message_id=removed.id)
    return {"message": "Message deleted", "data": removed.to_record()}


# ---------- Shared files ----------


@app.get("/shared", response_model=list[SharedFile])
def list_shared(storage: StorageService = Depends(get_storage)):
    return storage.list_shared_files()


@app.get("/shared/{filename}")
def download_shared(filename: str, storage: StorageService = Depends(get_storage)):
    data = storage.read_shared_file(filename)
    return Response(
        content=data,
        media_type=content_type_for(filename),
        headers={
            # inline to allow viewing in browser tab
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(filename, safe='')}",
            "Cache-Control": "no-store",
        },
    )


@app.delete("/api/files/{filename}")
def delete_shared(filename: str, storage: StorageService = Depends(get_storage)):
    storage.delete_shared_file(filename)
    return {"message": "File deleted successfully", "name": filename}


@app.get("/metrics")
def metrics():
    text = render_metrics()
    return PlainTextResponse(content=text, media_type="text/plain")
