"""
Service per la vista pubblica del preventivo
Progetto: Quote Desk (Gestionale Preventivi)

Il cliente apre un link con l'ID della revisione e vede il preventivo in
sola lettura. La vista non scrive mai sui dati del preventivo: l'unico
effetto collaterale è il tracciamento della visualizzazione.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from quotedesk.core.database import AsyncSessionLocal
from quotedesk.core.exceptions import AppException, NotFoundError
from quotedesk.models import Quote, QuoteRevision
from quotedesk.schemas.client_view import (
    ClientQuoteView,
    ClientViewItem,
    ClientViewPaymentTerm,
)
from quotedesk.services.quote_view_service import QuoteViewService

logger = logging.getLogger(__name__)


class ClientViewService:
    """Lettura composita di una revisione per la vista cliente."""

    async def load_revision(self, db: AsyncSession, revision_id: uuid.UUID) -> ClientQuoteView:
        """
        Revisione con preventivo, cliente, voci, rate e termini legali.

        Raises:
            NotFoundError: Se la revisione non esiste
        """
        result = await db.execute(
            select(QuoteRevision)
            .options(
                selectinload(QuoteRevision.quote).selectinload(Quote.client),
                selectinload(QuoteRevision.items),
                selectinload(QuoteRevision.payment_terms),
                selectinload(QuoteRevision.legal_terms),
            )
            .where(QuoteRevision.id == revision_id)
            .execution_options(populate_existing=True)
        )
        revision = result.scalar_one_or_none()

        if revision is None:
            logger.warning("Vista cliente: revisione non trovata %s", revision_id)
            raise NotFoundError("Preventivo non trovato")

        quote = revision.quote
        client = quote.client

        return ClientQuoteView(
            revision_id=revision.id,
            quote_id=quote.id,
            quote_number=quote.quote_number,
            revision_number=revision.revision_number,
            status=revision.status,
            client_name=client.name if client else "",
            client_email=client.email if client else "",
            title=revision.title,
            notes=revision.notes,
            legal_terms=revision.legal_terms[0].terms if revision.legal_terms else None,
            expires_on=revision.expires_on,
            created_at=revision.created_at,
            is_tax_enabled=revision.is_tax_enabled,
            tax_rate=revision.tax_rate,
            is_recurring=revision.is_recurring,
            billing_period=revision.billing_period,
            recurring_amount=revision.recurring_amount,
            items=[ClientViewItem.model_validate(item) for item in revision.items],
            payment_terms=[
                ClientViewPaymentTerm.model_validate(term) for term in revision.payment_terms
            ],
        )


class ClientQuoteViewSession:
    """
    Stato della vista cliente per una singola apertura del link.

    load() legge la revisione e, al primo caricamento riuscito, registra
    la visualizzazione. Un errore di lettura viene conservato in `error`,
    un errore di tracciamento viene solo loggato.
    """

    def __init__(
        self,
        revision_id: uuid.UUID,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        view_service: Optional[ClientViewService] = None,
        tracker: Optional[QuoteViewService] = None,
    ) -> None:
        self.revision_id = revision_id
        self.session_factory = session_factory
        self.view_service = view_service or ClientViewService()
        self.tracker = tracker or QuoteViewService(session_factory=session_factory)

        self.loading = False
        self.view: Optional[ClientQuoteView] = None
        self.error: Optional[str] = None
        self.view_tracked = False

    async def load(self) -> Optional[ClientQuoteView]:
        """Carica la revisione; restituisce None in caso di errore."""
        self.loading = True
        self.error = None
        try:
            async with self.session_factory() as db:
                self.view = await self.view_service.load_revision(db, self.revision_id)
        except AppException as e:
            self.error = e.detail
            self.view = None
            return None
        except SQLAlchemyError as e:
            logger.error("Errore lettura vista cliente %s: %s", self.revision_id, e)
            self.error = "Impossibile caricare il preventivo"
            self.view = None
            return None
        finally:
            self.loading = False

        if not self.view_tracked:
            self.view_tracked = True
            await self._track_view()

        return self.view

    async def _track_view(self) -> None:
        try:
            tracked = await self.tracker.track_quote_view(self.revision_id)
        except Exception as e:
            # Il tracciamento non deve mai interrompere la vista
            logger.warning("Errore tracciamento vista %s: %s", self.revision_id, e)
            return
        if not tracked:
            logger.info("Visualizzazione revisione %s non registrata", self.revision_id)
