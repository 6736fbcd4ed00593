"""
Search API — retrieval-augmented context for the assistant

POST /api/v1/search   body {query, userId?, topK?, threshold?, useRag?}

Returns the ranked matches plus the rendered context block the assistant
appends to its system prompt. Scope: the principal from the request body,
else the X-User-Id header; without either the search is unscoped.

Retrieval degrades to zero matches when the embedding call or the chunk
store fails; only missing configuration is an error (503).
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from caredocs.api.dependencies import get_document_retriever, get_principal_id
from caredocs.core.config import ConfigurationError, settings
from caredocs.rag.context import format_context, used_rag
from caredocs.rag.retriever import DocumentRetriever
from caredocs.schemas.documents import (
    ErrorResponse,
    ProcessingErrors,
    SearchMatch,
    SearchRequest,
    SearchResponse,
)
from caredocs.services.processing import ProcessingError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Search"])


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Scoped semantic search over uploaded documents",
    responses={503: {"model": ErrorResponse, "description": "Required configuration missing"}},
)
async def search_documents(
    body:      SearchRequest,
    retriever: Annotated[DocumentRetriever, Depends(get_document_retriever)],
    principal: Annotated[UUID | None, Depends(get_principal_id)],
) -> SearchResponse:
    try:
        settings.require_processing_credentials()
    except ConfigurationError as exc:
        raise ProcessingError(ProcessingErrors.configuration_missing(str(exc))) from exc

    if not body.use_rag:
        return SearchResponse(query=body.query)

    principal_id = body.user_id or principal
    matches = await retriever.retrieve(
        body.query,
        principal_id=principal_id,
        top_k=body.top_k,
        threshold=body.threshold,
    )
    context = format_context(matches)

    return SearchResponse(
        query=body.query,
        matches=[
            SearchMatch(
                document_id=m.document_id,
                document_title=m.document_title,
                content=m.content,
                similarity=m.similarity,
            )
            for m in matches
        ],
        context=context,
        used_rag=used_rag(body.use_rag, context),
    )
