"""
Caricamento automatico della revisione di un preventivo
Progetto: Quote Desk (Gestionale Preventivi)

Macchina a stati esplicita:

    IDLE → SELECTING_QUOTE → LOADING_REVISIONS → AUTO_SELECTING_REVISION → LOADED

Ogni nuova selezione riceve un token progressivo; i risultati di una
selezione superata da una più recente vengono scartati. Le operazioni già
avviate non vengono annullate. Un errore riporta lo stato a IDLE.
"""

import logging
import uuid
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quotedesk.core.database import AsyncSessionLocal
from quotedesk.core.exceptions import AppException
from quotedesk.schemas.quote import LoadedRevision, QuoteRevisionSummary
from quotedesk.services.quote_service import QuoteService

logger = logging.getLogger(__name__)


class RevisionLoadState(str, Enum):
    """Stati del caricamento revisione."""
    IDLE = "idle"
    SELECTING_QUOTE = "selecting_quote"
    LOADING_REVISIONS = "loading_revisions"
    AUTO_SELECTING_REVISION = "auto_selecting_revision"
    LOADED = "loaded"


class RevisionLoader:
    """
    Seleziona un preventivo, ne elenca le revisioni e carica la più recente.

    Attributes:
        state: Stato corrente della macchina
        selected_quote_id: Ultimo preventivo selezionato
        revisions: Revisioni del preventivo selezionato (dalla più recente)
        loaded: Revisione caricata, se lo stato è LOADED
        error: Messaggio dell'ultimo errore, se presente
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        quote_service: Optional[QuoteService] = None,
    ) -> None:
        self.session_factory = session_factory
        self.quote_service = quote_service or QuoteService()

        self.state = RevisionLoadState.IDLE
        self.selected_quote_id: Optional[uuid.UUID] = None
        self.revisions: list[QuoteRevisionSummary] = []
        self.loaded: Optional[LoadedRevision] = None
        self.error: Optional[str] = None
        self._token = 0

    def _begin(self) -> int:
        self._token += 1
        self.error = None
        return self._token

    def _is_superseded(self, token: int) -> bool:
        if token != self._token:
            logger.debug("Selezione %s superata dalla %s, risultato scartato", token, self._token)
            return True
        return False

    def _fail(self, token: int, message: str) -> None:
        if token == self._token:
            self.state = RevisionLoadState.IDLE
            self.error = message

    async def select_quote(self, quote_id: uuid.UUID) -> Optional[LoadedRevision]:
        """
        Seleziona il preventivo e carica automaticamente la revisione più recente.

        Returns:
            La revisione caricata, oppure None se la selezione è stata
            superata o è fallita
        """
        token = self._begin()
        self.state = RevisionLoadState.SELECTING_QUOTE
        self.selected_quote_id = quote_id
        self.revisions = []
        self.loaded = None

        try:
            self.state = RevisionLoadState.LOADING_REVISIONS
            async with self.session_factory() as db:
                revisions = await self.quote_service.list_revisions(db, quote_id)
            if self._is_superseded(token):
                return None

            self.revisions = [QuoteRevisionSummary.model_validate(r) for r in revisions]
            if not self.revisions:
                self._fail(token, "Nessuna revisione trovata per il preventivo")
                return None

            self.state = RevisionLoadState.AUTO_SELECTING_REVISION
            async with self.session_factory() as db:
                loaded = await self.quote_service.load_revision(db, self.revisions[0].id)
            if self._is_superseded(token):
                return None

        except AppException as e:
            logger.warning("Caricamento preventivo %s fallito: %s", quote_id, e.detail)
            self._fail(token, e.detail)
            return None
        except SQLAlchemyError as e:
            logger.error("Errore database caricamento preventivo %s: %s", quote_id, e)
            self._fail(token, "Errore durante il caricamento del preventivo")
            return None

        self.loaded = loaded
        self.state = RevisionLoadState.LOADED
        return loaded

    async def select_revision(self, revision_id: uuid.UUID) -> Optional[LoadedRevision]:
        """Carica una revisione specifica scelta dall'utente."""
        token = self._begin()
        self.state = RevisionLoadState.AUTO_SELECTING_REVISION

        try:
            async with self.session_factory() as db:
                loaded = await self.quote_service.load_revision(db, revision_id)
        except AppException as e:
            logger.warning("Caricamento revisione %s fallito: %s", revision_id, e.detail)
            self._fail(token, e.detail)
            return None
        except SQLAlchemyError as e:
            logger.error("Errore database caricamento revisione %s: %s", revision_id, e)
            self._fail(token, "Errore durante il caricamento della revisione")
            return None

        if self._is_superseded(token):
            return None

        self.selected_quote_id = loaded.quote_id
        self.loaded = loaded
        self.state = RevisionLoadState.LOADED
        return loaded

    def reset(self) -> None:
        """Torna a IDLE scartando eventuali caricamenti in corso."""
        self._begin()
        self.state = RevisionLoadState.IDLE
        self.selected_quote_id = None
        self.revisions = []
        self.loaded = None
