"""
Service per il tracciamento delle visualizzazioni del preventivo
Progetto: Quote Desk (Gestionale Preventivi)

Il tracciamento è "best effort": entrambe le varianti restituiscono un
booleano e non sollevano mai eccezioni verso il chiamante.
"""

import datetime
import logging
import uuid
from typing import Optional

import httpx
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quotedesk.core.config import settings
from quotedesk.core.database import AsyncSessionLocal
from quotedesk.models import QuoteRevision

logger = logging.getLogger(__name__)


class QuoteViewService:
    """
    Registra l'apertura di una revisione da parte del cliente.

    - track_quote_view: chiamata HTTP all'endpoint configurato
      (view_tracking_url); senza endpoint ripiega sulla variante diretta.
    - track_quote_view_direct: aggiorna viewed_at nel database con una
      sessione dedicata, indipendente da quella della lettura.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        tracking_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.session_factory = session_factory
        self.tracking_url = tracking_url if tracking_url is not None else settings.view_tracking_url
        self.timeout = timeout if timeout is not None else settings.view_tracking_timeout_seconds
        self.transport = transport

    async def track_quote_view(self, revision_id: uuid.UUID) -> bool:
        """Notifica la visualizzazione all'endpoint remoto."""
        if not self.tracking_url:
            return await self.track_quote_view_direct(revision_id)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.tracking_url,
                    json={"revision_id": str(revision_id)},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Tracciamento visualizzazione fallito per revisione %s: %s - %s",
                revision_id, e.__class__.__name__, e,
            )
            return False

        logger.info("Visualizzazione revisione %s tracciata (remoto)", revision_id)
        return True

    async def track_quote_view_direct(self, revision_id: uuid.UUID) -> bool:
        """Segna viewed_at = adesso sulla revisione."""
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    update(QuoteRevision)
                    .where(QuoteRevision.id == revision_id)
                    .values(viewed_at=datetime.datetime.now(datetime.timezone.utc))
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning(
                "Tracciamento diretto fallito per revisione %s: %s - %s",
                revision_id, e.__class__.__name__, e,
            )
            return False

        if result.rowcount == 0:
            logger.warning("Tracciamento: revisione %s inesistente", revision_id)
            return False

        logger.info("Visualizzazione revisione %s tracciata (diretto)", revision_id)
        return True
