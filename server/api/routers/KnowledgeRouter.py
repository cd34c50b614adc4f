"""Knowledge router: document intake, listing, deletion, re-index, job status and search."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.models.requests import CreateDocumentRequest, SearchRequest
from server.models.responses import (
    ActionResponse,
    DocumentCreatedResponse,
    DocumentItem,
    DocumentListResponse,
    JobResponse,
    SearchResponse,
    SearchResultItem,
)
from shared.dependencies.auth import verify_api_key
from shared.models.document import DocumentCategory, DocumentStatus

knowledge_router = APIRouter(prefix="/api/knowledge", dependencies=[Depends(verify_api_key)])


@knowledge_router.post("/documents", status_code=202, tags=["Knowledge"])
async def handle_create_document(request: Request, body: CreateDocumentRequest) -> JSONResponse:
    """Store a document and queue it for indexing.

    Returns:
        JSONResponse: 202 with the document id and the indexing job id.
    """
    document, job = await request.app.state.knowledge_service.create_document(
        tenant=body.tenant,
        title=body.title,
        category=body.category,
        content=body.content,
        file_path=body.file_path,
        file_type=body.file_type,
        metadata=body.metadata,
    )
    result = DocumentCreatedResponse(document_id=document.id, job_id=job.job_id, status=document.status.value)
    return JSONResponse(status_code=202, content=result.model_dump())


@knowledge_router.get("/documents", tags=["Knowledge"])
async def handle_list_documents(
    request: Request,
    tenant: str | None = None,
    status: DocumentStatus | None = None,
    category: DocumentCategory | None = None,
) -> JSONResponse:
    documents = await request.app.state.knowledge_service.list_documents(tenant=tenant, status=status, category=category)
    result = DocumentListResponse(
        documents=[DocumentItem.from_document(d) for d in documents],
        total=len(documents),
    )
    return JSONResponse(content=result.model_dump(mode="json"))


@knowledge_router.get("/documents/{document_id}", tags=["Knowledge"])
async def handle_get_document(request: Request, document_id: str) -> JSONResponse:
    document = await request.app.state.knowledge_service.get_document(document_id)
    return JSONResponse(content=DocumentItem.from_document(document).model_dump(mode="json"))


@knowledge_router.delete("/documents/{document_id}", tags=["Knowledge"])
async def handle_delete_document(request: Request, document_id: str) -> JSONResponse:
    await request.app.state.knowledge_service.delete_document(document_id)
    return JSONResponse(content=ActionResponse(message="Document deleted.").model_dump())


@knowledge_router.post("/reindex/{document_id}", status_code=202, tags=["Knowledge"])
async def handle_reindex_document(request: Request, document_id: str) -> JSONResponse:
    job = await request.app.state.knowledge_service.reindex_document(document_id)
    result = ActionResponse(message="Document queued for re-indexing.", job_id=job.job_id)
    return JSONResponse(status_code=202, content=result.model_dump())


@knowledge_router.get("/jobs/{job_id}", tags=["Knowledge"])
async def handle_get_job(request: Request, job_id: str) -> JSONResponse:
    """Report state and progress of an indexing job, by job id or by document id (latest job).

    Raises:
        HTTPException: 404 if the job is unknown or its record was already evicted.
    """
    job = request.app.state.knowledge_service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JSONResponse(content=JobResponse.from_job(job).model_dump(mode="json"))


@knowledge_router.post("/search", tags=["Knowledge"])
async def handle_search(request: Request, body: SearchRequest) -> JSONResponse:
    """Tenant-scoped similarity search over indexed fragments."""
    retrieval = await request.app.state.knowledge_service.search(
        query=body.query,
        tenant=body.tenant,
        category=body.category.value if body.category else None,
        top_k=body.top_k,
    )
    result = SearchResponse(
        query=body.query,
        results=[SearchResultItem.from_fragment(f) for f in retrieval.fragments],
        max_score=retrieval.max_score,
        total=len(retrieval.fragments),
    )
    return JSONResponse(content=result.model_dump())
