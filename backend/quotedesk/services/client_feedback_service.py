"""
Service Layer per il feedback del cliente
Progetto: Quote Desk (Gestionale Preventivi)

Il feedback (accetta / rifiuta / richiedi modifiche + commento) è
append-only: ogni invio aggiunge un record, nessuno viene modificato.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.exceptions import ConflictError
from quotedesk.models import ClientComment
from quotedesk.schemas.client_view import FeedbackCreate
from quotedesk.services.quote_service import QuoteService

logger = logging.getLogger(__name__)


class ClientFeedbackService:
    """Service per il feedback inviato dalla vista cliente."""

    def __init__(self, quote_service: Optional[QuoteService] = None) -> None:
        self.quote_service = quote_service or QuoteService()

    async def submit(
        self,
        db: AsyncSession,
        revision_id: uuid.UUID,
        feedback: FeedbackCreate,
    ) -> ClientComment:
        """
        Registra il feedback del cliente sulla revisione.

        Raises:
            NotFoundError: Se la revisione non esiste
            ConflictError: Errore del database
        """
        revision = await self.quote_service.get_revision(db, revision_id)

        comment = ClientComment(
            quote_id=revision.quote_id,
            quote_revision_id=revision.id,
            client_email=feedback.client_email.strip(),
            action=feedback.action.value,
            comment=feedback.comment,
        )
        try:
            db.add(comment)
            await db.flush()
            await db.refresh(comment)
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy invio feedback revisione %s: %s", revision_id, e)
            raise ConflictError("Errore del database durante l'invio del feedback") from e

        logger.info(
            "Feedback %s ricevuto da %s per revisione %s",
            comment.action, comment.client_email, revision_id,
        )
        return comment

    async def list_for_quote(self, db: AsyncSession, quote_id: uuid.UUID) -> list[ClientComment]:
        """Feedback del cliente su tutte le revisioni del preventivo."""
        result = await db.execute(
            select(ClientComment)
            .where(ClientComment.quote_id == quote_id, ClientComment.action.is_not(None))
            .order_by(ClientComment.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_revision(
        self, db: AsyncSession, revision_id: uuid.UUID
    ) -> list[ClientComment]:
        """Feedback sulla revisione, dal più recente."""
        result = await db.execute(
            select(ClientComment)
            .where(
                ClientComment.quote_revision_id == revision_id,
                ClientComment.action.is_not(None),
            )
            .order_by(ClientComment.created_at.desc())
        )
        return list(result.scalars().all())

    async def has_client_feedback(
        self, db: AsyncSession, revision_id: uuid.UUID, client_email: str
    ) -> bool:
        """True se il cliente ha già lasciato un feedback sulla revisione."""
        result = await db.execute(
            select(ClientComment.id)
            .where(
                ClientComment.quote_revision_id == revision_id,
                ClientComment.client_email == client_email.strip(),
                ClientComment.action.is_not(None),
            )
            .limit(1)
        )
        return result.first() is not None
