from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter

from ..services.hf_models import list_available_tokenizers

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/list-models")
async def list_models(search: Optional[str] = None) -> dict[str, Any]:
    """Return every selectable tokenizer, optionally filtered by a search term."""
    models = list_available_tokenizers()
    if search:
        q = search.lower()
        models = [
            m
            for m in models
            if q in m["id"].lower() or q in m["name"].lower() or q in m["description"].lower()
        ]
    return {"success": True, "data": models}
