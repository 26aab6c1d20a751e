"""
Router FastAPI per la vista cliente e il feedback
Progetto: Quote Desk (Gestionale Preventivi)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.database import get_db
from quotedesk.core.exceptions import NotFoundError
from quotedesk.schemas.client_view import (
    ClientQuoteView,
    FeedbackCheck,
    FeedbackCreate,
    FeedbackRead,
)
from quotedesk.services.client_feedback_service import ClientFeedbackService
from quotedesk.services.client_view_service import ClientQuoteViewSession
from quotedesk.services.quote_view_service import QuoteViewService

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Vista cliente"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_feedback_service() -> ClientFeedbackService:
    """Dependency per ottenere un'istanza del ClientFeedbackService."""
    return ClientFeedbackService()


def get_quote_view_service() -> QuoteViewService:
    """Dependency per il tracciamento delle visualizzazioni."""
    return QuoteViewService()


async def open_client_view(
    revision_id: uuid.UUID,
    tracker: QuoteViewService = Depends(get_quote_view_service),
) -> ClientQuoteView:
    """
    Apre la vista cliente della revisione (una sessione per richiesta).

    Raises:
        NotFoundError: Se la revisione non esiste o non è leggibile
    """
    session = ClientQuoteViewSession(
        revision_id,
        session_factory=tracker.session_factory,
        tracker=tracker,
    )
    view = await session.load()
    if view is None:
        raise NotFoundError(session.error or "Preventivo non trovato")
    return view


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/client-view/{revision_id}",
    name="vista_cliente",
    summary="Vista cliente della revisione",
    description="Preventivo in sola lettura per il cliente; registra la visualizzazione.",
    response_model=ClientQuoteView,
    status_code=status.HTTP_200_OK,
)
async def get_client_view(
    view: ClientQuoteView = Depends(open_client_view),
) -> ClientQuoteView:
    return view


@router.post(
    "/client-view/{revision_id}/feedback",
    name="vista_cliente_feedback",
    summary="Invia feedback",
    description="Accetta, rifiuta o richiedi modifiche con un commento obbligatorio.",
    response_model=FeedbackRead,
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    revision_id: uuid.UUID,
    feedback: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
    service: ClientFeedbackService = Depends(get_feedback_service),
) -> FeedbackRead:
    comment = await service.submit(db, revision_id, feedback)
    await db.commit()
    return FeedbackRead.model_validate(comment)


@router.get(
    "/client-view/{revision_id}/feedback",
    name="vista_cliente_feedback_lista",
    summary="Feedback della revisione",
    response_model=list[FeedbackRead],
    status_code=status.HTTP_200_OK,
)
async def list_revision_feedback(
    revision_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientFeedbackService = Depends(get_feedback_service),
) -> list[FeedbackRead]:
    comments = await service.list_for_revision(db, revision_id)
    return [FeedbackRead.model_validate(c) for c in comments]


@router.get(
    "/client-view/{revision_id}/has-feedback",
    name="vista_cliente_feedback_presente",
    summary="Feedback già inviato?",
    response_model=FeedbackCheck,
    status_code=status.HTTP_200_OK,
)
async def has_feedback(
    revision_id: uuid.UUID,
    email: str = Query(..., min_length=1, description="Email del cliente"),
    db: AsyncSession = Depends(get_db),
    service: ClientFeedbackService = Depends(get_feedback_service),
) -> FeedbackCheck:
    return FeedbackCheck(
        has_feedback=await service.has_client_feedback(db, revision_id, email)
    )


@router.get(
    "/quotes/{quote_id}/feedback",
    name="preventivo_feedback",
    summary="Feedback del preventivo",
    description="Feedback del cliente su tutte le revisioni del preventivo.",
    response_model=list[FeedbackRead],
    status_code=status.HTTP_200_OK,
)
async def list_quote_feedback(
    quote_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientFeedbackService = Depends(get_feedback_service),
) -> list[FeedbackRead]:
    comments = await service.list_for_quote(db, quote_id)
    return [FeedbackRead.model_validate(c) for c in comments]
