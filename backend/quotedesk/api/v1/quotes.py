"""
Router FastAPI per i Preventivi
Progetto: Quote Desk (Gestionale Preventivi)

Definisce gli endpoint per il ricalcolo della bozza, il salvataggio,
la numerazione, l'elenco e il caricamento delle revisioni e l'invio al
cliente.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.database import get_db
from quotedesk.schemas.quote import (
    LoadedRevision,
    NextQuoteNumber,
    QuoteDraft,
    QuoteRevisionSummary,
    SaveResult,
    SendQuoteResult,
)
from quotedesk.services.email_service import EmailSender, get_email_sender
from quotedesk.services.quote_service import QuoteService

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Preventivi"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_quote_service() -> QuoteService:
    """Dependency per ottenere un'istanza del QuoteService."""
    return QuoteService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.post(
    "/quotes/draft/recompute",
    name="preventivo_ricalcolo",
    summary="Ricalcola i totali della bozza",
    description="Restituisce la bozza con totali di riga, subtotale, imposta e totale aggiornati.",
    response_model=QuoteDraft,
    status_code=status.HTTP_200_OK,
)
async def recompute_draft(draft: QuoteDraft) -> QuoteDraft:
    # I totali sono ricalcolati dalla validazione del modello
    return draft


@router.post(
    "/quotes/save",
    name="preventivo_salva",
    summary="Salva preventivo",
    description=(
        "Crea il preventivo se il numero non esiste, altrimenti sovrascrive "
        "la revisione corrente."
    ),
    response_model=SaveResult,
    status_code=status.HTTP_200_OK,
)
async def save_quote(
    draft: QuoteDraft,
    db: AsyncSession = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
) -> SaveResult:
    """
    Salva la bozza.

    Raises:
        BusinessValidationError: numero preventivo, cliente o voci mancanti (422)
        ConflictError: errore del database (409)
    """
    result = await service.save_quote(db, draft)
    await db.commit()
    return result


@router.get(
    "/quotes/next-number",
    name="preventivo_prossimo_numero",
    summary="Prossimo numero preventivo",
    response_model=NextQuoteNumber,
    status_code=status.HTTP_200_OK,
)
async def get_next_quote_number(
    db: AsyncSession = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
) -> NextQuoteNumber:
    return NextQuoteNumber(quote_number=await service.next_quote_number(db))


@router.get(
    "/quotes/{quote_id}/revisions",
    name="preventivo_revisioni",
    summary="Revisioni del preventivo",
    description="Elenco delle revisioni, dalla più recente.",
    response_model=list[QuoteRevisionSummary],
    status_code=status.HTTP_200_OK,
)
async def get_quote_revisions(
    quote_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
) -> list[QuoteRevisionSummary]:
    await service.get_by_id(db, quote_id)
    revisions = await service.list_revisions(db, quote_id)
    return [QuoteRevisionSummary.model_validate(r) for r in revisions]


@router.get(
    "/revisions/{revision_id}",
    name="revisione_carica",
    summary="Carica revisione",
    description="Revisione convertita in bozza modificabile.",
    response_model=LoadedRevision,
    status_code=status.HTTP_200_OK,
)
async def load_revision(
    revision_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
) -> LoadedRevision:
    return await service.load_revision(db, revision_id)


@router.post(
    "/quotes/send",
    name="preventivo_invia",
    summary="Invia preventivo al cliente",
    description=(
        "Salva la bozza, invia l'email al cliente (o restituisce il link mailto) "
        "e segna la revisione come inviata."
    ),
    response_model=SendQuoteResult,
    status_code=status.HTTP_200_OK,
)
async def send_quote(
    draft: QuoteDraft,
    db: AsyncSession = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
    sender: EmailSender = Depends(get_email_sender),
) -> SendQuoteResult:
    """
    Invio del preventivo.

    Il salvataggio viene confermato prima dell'invio dell'email: se l'invio
    fallisce il preventivo resta salvato ma non segnato come inviato.

    Raises:
        BusinessValidationError: email cliente o numero preventivo mancanti (422)
        ExternalServiceError: invio email fallito (502)
    """
    return await service.send_quote(db, draft, sender)
