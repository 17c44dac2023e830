"""Writing assistance endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_grammar_client
from ..services.grammar import GrammarClient, apply_suggestions

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post("/improve-content", response_model=schemas.ImproveContentResponse)
def improve_content(
    payload: schemas.ImproveContentRequest,
    grammar: GrammarClient = Depends(get_grammar_client),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ImproveContentResponse:
    """Apply the grammar service's first suggestion for each reported error."""
    suggestions = grammar.suggest(payload.content)
    return schemas.ImproveContentResponse(
        improved_content=apply_suggestions(payload.content, suggestions),
        corrections=len(suggestions),
        original=payload.content,
    )
