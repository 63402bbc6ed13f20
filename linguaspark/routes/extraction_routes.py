"""
Handoff of extracted page content from the browser extension to the popup
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from linguaspark.core.cache import ExtractionStore, get_extraction_store
from linguaspark.core.exceptions import ContentValidationError
from linguaspark.core.logging import get_logger
from linguaspark.schemas import ExtractionActionRequest, ExtractionRetrieveRequest, ExtractionStoreRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["extraction"])


async def _retrieve(store: ExtractionStore, session_id: str) -> Dict[str, Any]:
    content = await store.retrieve(session_id)
    if content is None:
        return {"success": False, "error": "No content found"}
    return {"success": True, "data": content}


@router.post("/extracted-content/store")
async def store_extracted_content(
    req: ExtractionStoreRequest,
    store: ExtractionStore = Depends(get_extraction_store)
):
    entry = await store.store(req.session_id, req.data)
    return {"success": True, "sessionId": req.session_id, "timestamp": entry["timestamp"]}


@router.post("/extracted-content/retrieve")
async def retrieve_extracted_content(
    req: ExtractionRetrieveRequest,
    store: ExtractionStore = Depends(get_extraction_store)
):
    """Single use: the entry is removed by the first successful retrieve."""
    return await _retrieve(store, req.session_id)


@router.post("/get-extracted-content")
async def extracted_content_action(
    req: ExtractionActionRequest,
    store: ExtractionStore = Depends(get_extraction_store)
):
    """Older extension builds post {action, sessionId, data} to one endpoint."""
    if req.action == "store":
        if req.data is None:
            raise ContentValidationError("data is required for the store action")
        await store.store(req.session_id, req.data)
        return {"success": True}
    if req.action == "retrieve":
        return await _retrieve(store, req.session_id)
    raise ContentValidationError(f"Invalid action '{req.action}'", suggestions=["Use 'store' or 'retrieve'"])
