"""
Router FastAPI per i termini legali predefiniti
Progetto: Quote Desk (Gestionale Preventivi)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.database import get_db
from quotedesk.schemas.legal_terms import DefaultLegalTermsRead, DefaultLegalTermsUpdate
from quotedesk.services.legal_terms_service import LegalTermsService

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/owners/{owner_id}/default-legal-terms",
    tags=["Termini legali"],
)


def get_legal_terms_service() -> LegalTermsService:
    """Dependency per ottenere un'istanza del LegalTermsService."""
    return LegalTermsService()


@router.get(
    "",
    name="termini_legali_predefiniti",
    summary="Termini legali predefiniti",
    description="Testo predefinito del proprietario (vuoto se mai impostato).",
    response_model=DefaultLegalTermsRead,
    status_code=status.HTTP_200_OK,
)
async def get_default_legal_terms(
    owner_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: LegalTermsService = Depends(get_legal_terms_service),
) -> DefaultLegalTermsRead:
    terms = await service.load_default(db, owner_id)
    return DefaultLegalTermsRead(owner_id=owner_id, terms=terms)


@router.put(
    "",
    name="termini_legali_predefiniti_salva",
    summary="Salva termini legali predefiniti",
    response_model=DefaultLegalTermsRead,
    status_code=status.HTTP_200_OK,
)
async def save_default_legal_terms(
    owner_id: uuid.UUID,
    data: DefaultLegalTermsUpdate,
    db: AsyncSession = Depends(get_db),
    service: LegalTermsService = Depends(get_legal_terms_service),
) -> DefaultLegalTermsRead:
    record = await service.save_default(db, owner_id, data.terms)
    await db.commit()
    return DefaultLegalTermsRead(owner_id=record.owner_id, terms=record.terms)
