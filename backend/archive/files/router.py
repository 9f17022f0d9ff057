"""FastAPI router for the file archive.

Pages:
    GET  /search            - File list with image previews
    GET  /file              - Upload form and file list
    POST /upload            - Store one file (multipart field ``file``)

JSON / streaming:
    GET    /files             - All records
    GET    /files/{filename}  - One record
    GET    /image/{filename}  - Image bytes (JPEG / PNG only)
    GET    /read/{filename}   - Bytes of any file
    DELETE /files/{file_id}   - Remove a file by id

Every route except DELETE requires a logged-in session; without one the
client is redirected to ``/``. DELETE is only gated when
``security.protect_delete`` is set.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from starlette.datastructures import UploadFile

from archive.auth.gate import Authorization, evaluate, require_session
from archive.blobstore import BlobStore, ByteStream, pipe
from archive.exceptions import MissingUpload, SessionRequired, StorageError
from archive.views import templates

from .schemas import UPLOAD_FIELD
from .service import FileArchiveService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

gated = [Depends(require_session)]


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_archive_service(
    request: Request,
    store: BlobStore = Depends(get_blob_store),
) -> FileArchiveService:
    config = request.app.state.config
    return FileArchiveService(
        store,
        on_collision=config.uploads.on_collision,
        bucket=config.storage.bucket,
    )


def _stream_response(stream: ByteStream) -> StreamingResponse:
    record = stream.record
    return StreamingResponse(
        pipe(stream),
        media_type=record.content_type or "application/octet-stream",
        headers={"Content-Length": str(record.length)},
    )


# =============================================================================
# Pages
# =============================================================================


@router.get("/search", dependencies=gated)
async def search_page(request: Request, service: FileArchiveService = Depends(get_archive_service)):
    """Render the file list; an empty archive renders with ``files=False``."""
    listing = await service.list_for_view()
    return templates.TemplateResponse(request, "search.html", listing.template_context())


@router.get("/file", dependencies=gated)
async def save_page(request: Request, service: FileArchiveService = Depends(get_archive_service)):
    """Render the upload form with the current file list."""
    listing = await service.list_for_view()
    return templates.TemplateResponse(request, "save.html", listing.template_context())


@router.post("/upload", dependencies=gated)
async def upload_file(
    request: Request,
    service: FileArchiveService = Depends(get_archive_service),
) -> RedirectResponse:
    """Store the uploaded file and go back to the file page.

    The multipart body is parsed here rather than through a ``File()``
    parameter so that the session gate runs before any of it is read.
    """
    form = await request.form()
    try:
        upload = form.get(UPLOAD_FIELD)
        if not isinstance(upload, UploadFile):
            raise MissingUpload()
        await service.upload(upload)
    finally:
        await form.close()

    return RedirectResponse("/file", status_code=303)


# =============================================================================
# JSON API
# =============================================================================


@router.get("/files", dependencies=gated)
async def list_files(service: FileArchiveService = Depends(get_archive_service)) -> JSONResponse:
    """All records as JSON; 404 ``{"err": "No files exist"}`` when empty."""
    records = await service.list_for_api()
    return JSONResponse([record.to_json() for record in records])


@router.get("/files/{filename}", dependencies=gated)
async def get_file(filename: str, service: FileArchiveService = Depends(get_archive_service)) -> JSONResponse:
    """One record as JSON; 404 ``{"err": "No file exists"}`` when missing."""
    record = await service.get_file(filename)
    return JSONResponse(record.to_json())


@router.get("/image/{filename}", dependencies=gated)
async def read_image(filename: str, service: FileArchiveService = Depends(get_archive_service)) -> StreamingResponse:
    """Stream an image with its stored content type.

    Raises:
        FileNotFound: 404 when the file is missing.
        NotAnImage: 404 when the file is not a JPEG or PNG.
    """
    stream = await service.open_image(filename)
    return _stream_response(stream)


@router.get("/read/{filename}", dependencies=gated)
async def read_file(filename: str, service: FileArchiveService = Depends(get_archive_service)) -> StreamingResponse:
    """Stream any file regardless of type."""
    stream = await service.open_file(filename)
    return _stream_response(stream)


@router.delete("/files/{file_id}")
async def delete_file(
    request: Request,
    file_id: str,
    service: FileArchiveService = Depends(get_archive_service),
):
    """Delete a file by store id and go back to the file page.

    Returns:
        303 redirect to ``/file``, or 404 ``{"err": ...}`` when the delete fails.
    """
    if request.app.state.config.security.protect_delete:
        if evaluate(request.session) is Authorization.UNAUTHORIZED:
            raise SessionRequired()

    try:
        await service.delete(file_id)
    except StorageError as e:
        logger.warning(f"Delete of {file_id} failed: {e}")
        return JSONResponse({"err": str(e)}, status_code=404)

    return RedirectResponse("/file", status_code=303)
