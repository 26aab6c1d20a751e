"""
Punto di ingresso dell'applicazione
Progetto: Quote Desk (Gestionale Preventivi)

GET /?revision=<id> restituisce la vista cliente della revisione;
senza parametro restituisce una bozza nuova per il form di modifica.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.api.v1.client_view import get_quote_view_service, open_client_view
from quotedesk.core.config import settings
from quotedesk.core.database import get_db
from quotedesk.schemas.client_view import EntryResponse
from quotedesk.schemas.quote import QuoteDraft
from quotedesk.services.legal_terms_service import LegalTermsService
from quotedesk.services.quote_service import QuoteService
from quotedesk.services.quote_view_service import QuoteViewService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingresso"])


@router.get(
    "/",
    name="ingresso",
    summary="Vista cliente o nuova bozza",
    response_model=EntryResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def entry(
    revision: Optional[uuid.UUID] = Query(None, description="ID della revisione da mostrare al cliente"),
    db: AsyncSession = Depends(get_db),
    tracker: QuoteViewService = Depends(get_quote_view_service),
) -> EntryResponse:
    if revision is not None:
        view = await open_client_view(revision, tracker)
        return EntryResponse(mode="client_view", client_view=view)

    owner_id = settings.default_owner_id
    draft = QuoteDraft(
        owner=owner_id,
        quote_number=await QuoteService().next_quote_number(db),
        legal_terms=await LegalTermsService().load_default(db, owner_id),
    )
    return EntryResponse(mode="editor", draft=draft)
