"""
Service Layer per i termini legali predefiniti
Progetto: Quote Desk (Gestionale Preventivi)
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.exceptions import ConflictError
from quotedesk.models import DefaultLegalTerms

logger = logging.getLogger(__name__)


class LegalTermsService:
    """Termini legali predefiniti, uno per proprietario."""

    async def load_default(self, db: AsyncSession, owner_id: uuid.UUID) -> str:
        """Testo predefinito del proprietario, stringa vuota se assente."""
        result = await db.execute(
            select(DefaultLegalTerms.terms).where(DefaultLegalTerms.owner_id == owner_id)
        )
        terms = result.scalar_one_or_none()
        return terms or ""

    async def save_default(
        self, db: AsyncSession, owner_id: uuid.UUID, terms: str
    ) -> DefaultLegalTerms:
        """
        Crea o aggiorna i termini predefiniti del proprietario.

        Raises:
            ConflictError: Errore del database
        """
        try:
            result = await db.execute(
                select(DefaultLegalTerms).where(DefaultLegalTerms.owner_id == owner_id)
            )
            record = result.scalar_one_or_none()
            if record is None:
                record = DefaultLegalTerms(owner_id=owner_id, terms=terms)
                db.add(record)
                logger.info("Creati termini legali predefiniti per %s", owner_id)
            else:
                record.terms = terms
                logger.info("Aggiornati termini legali predefiniti per %s", owner_id)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy salvataggio termini legali %s: %s", owner_id, e)
            raise ConflictError("Errore del database durante il salvataggio dei termini legali") from e
        return record
