import asyncio

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from campus_rag.api.deps import get_container, get_rag
from campus_rag.core.container import Container
from campus_rag.core.errors import GatewayError, NotFoundError
from campus_rag.schemas.documents import (
    DocumentRecord,
    IngestOutcome,
    PastedTextIn,
    SourceKind,
    UrlIn,
)
from campus_rag.services.extractor import UnsupportedFileType, extract_file, fetch_url_text
from campus_rag.services.rag import RagService

router = APIRouter(prefix="/documents", tags=["documents"])


def _respond(outcome: IngestOutcome):
    if not outcome.ok:
        return JSONResponse(status_code=502, content=outcome.model_dump(mode="json"))
    return outcome


@router.post("/text", response_model=IngestOutcome)
async def ingest_pasted(
    payload: PastedTextIn,
    container: Container = Depends(get_container),
    rag: RagService = Depends(get_rag),
):
    outcome = await rag.ingest_document(
        payload.text,
        role=payload.role,
        department=payload.department,
        namespace=container.settings.PINECONE_NAMESPACE,
        source_kind=SourceKind.FILE,
        origin=payload.origin,
        title=payload.title,
    )
    return _respond(outcome)


@router.post("/url", response_model=IngestOutcome)
async def ingest_url(
    payload: UrlIn,
    container: Container = Depends(get_container),
    rag: RagService = Depends(get_rag),
):
    try:
        text = await asyncio.to_thread(fetch_url_text, payload.url)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    outcome = await rag.ingest_document(
        text,
        role=payload.role,
        department=payload.department,
        namespace=container.settings.PINECONE_NAMESPACE,
        source_kind=SourceKind.URL,
        origin=payload.url,
        title=payload.title,
    )
    return _respond(outcome)


@router.post("/upload", response_model=IngestOutcome)
async def ingest_upload(
    file: UploadFile = File(...),
    role: str = Form("student"),
    department: str = Form("general"),
    title: str | None = Form(None),
    container: Container = Depends(get_container),
    rag: RagService = Depends(get_rag),
):
    data = await file.read()
    if len(data) > container.settings.MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail="File too large")

    filename = file.filename or "upload"
    try:
        text = await asyncio.to_thread(extract_file, filename, data, file.content_type)
    except UnsupportedFileType:
        raise HTTPException(status_code=400, detail="Unsupported file type")

    outcome = await rag.ingest_document(
        text,
        role=role,
        department=department,
        namespace=container.settings.PINECONE_NAMESPACE,
        source_kind=SourceKind.FILE,
        origin=filename,
        title=title,
    )
    return _respond(outcome)


@router.get("/{document_id}", response_model=DocumentRecord)
async def get_document(document_id: str, container: Container = Depends(get_container)):
    try:
        return await container.documents.get(document_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
