"""
Sessione di modifica del preventivo
Progetto: Quote Desk (Gestionale Preventivi)

Tiene in memoria la bozza in modifica e ne mantiene coerenti i totali:
ogni modifica a voci, flag imposta o aliquota confermata ricalcola
subtotale, imposta e totale.

Le operazioni che toccano il database (salvataggio, caricamento, invio)
aprono una propria sessione, intercettano gli errori e li trasformano in
una Notification per l'utente. I flag di operazione in corso vengono
sempre azzerati.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quotedesk.core.config import settings
from quotedesk.core.database import AsyncSessionLocal
from quotedesk.core.exceptions import AppException, BusinessValidationError
from quotedesk.schemas.client import ClientSuggestion
from quotedesk.schemas.quote import (
    LoadedRevision,
    Notification,
    NotificationType,
    PaymentTermDraft,
    QuoteDraft,
    QuoteHistoryEntry,
    QuoteItemDraft,
    QuoteStatus,
    SaveResult,
    SendQuoteResult,
)
from quotedesk.services.client_service import ClientService
from quotedesk.services.email_service import EmailSender, MockEmailSender
from quotedesk.services.legal_terms_service import LegalTermsService
from quotedesk.services.quote_calculator import (
    line_total,
    quantize,
    quantize_rate,
    schedule_total,
    to_decimal,
)
from quotedesk.services.quote_service import QuoteService
from quotedesk.services.revision_loader import RevisionLoader

logger = logging.getLogger(__name__)

SAVE_SUCCESS_MESSAGE = "Preventivo salvato con successo!"
SEND_SUCCESS_MESSAGE = "Preventivo inviato al cliente!"

# Campi derivati esclusi dal confronto per le modifiche non salvate
_DERIVED_FIELDS = {"subtotal", "tax", "total", "payment_schedule_total", "payment_schedule_warning"}

# Campi della bozza modificabili con update_fields
_EDITABLE_FIELDS = {
    "owner",
    "client_name",
    "client_email",
    "quote_number",
    "quote_url",
    "expires",
    "title",
    "notes",
    "legal_terms",
    "client_comments",
    "is_recurring",
    "billing_period",
    "recurring_amount",
}


def _snapshot(draft: QuoteDraft) -> dict[str, Any]:
    return draft.model_dump(mode="json", exclude=_DERIVED_FIELDS)


class QuoteEditorSession:
    """
    Stato della sessione di modifica di un preventivo.

    Attributes:
        draft: Bozza corrente
        is_saving / is_sending / is_loading: Operazioni in corso
        notification: Ultimo esito da mostrare all'utente
        history: Cronologia dei salvataggi della sessione (più recente per prima)
        pending_tax_rate: Aliquota proposta, non ancora confermata
        current_quote_id / current_revision_id: Preventivo caricato o salvato
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        quote_service: Optional[QuoteService] = None,
        client_service: Optional[ClientService] = None,
        legal_terms_service: Optional[LegalTermsService] = None,
        email_sender: Optional[EmailSender] = None,
        owner_id: Optional[uuid.UUID] = None,
    ) -> None:
        self.session_factory = session_factory
        self.client_service = client_service or ClientService()
        self.quote_service = quote_service or QuoteService(self.client_service)
        self.legal_terms_service = legal_terms_service or LegalTermsService()
        self.email_sender: EmailSender = email_sender or MockEmailSender()
        self.loader = RevisionLoader(session_factory, self.quote_service)
        self.owner_id = owner_id or settings.default_owner_id

        self.draft = QuoteDraft(owner=self.owner_id)
        self.is_saving = False
        self.is_sending = False
        self.is_loading = False
        self.notification: Optional[Notification] = None
        self.history: list[QuoteHistoryEntry] = []
        self.pending_tax_rate: Optional[Decimal] = None
        self.current_quote_id: Optional[uuid.UUID] = None
        self.current_revision_id: Optional[uuid.UUID] = None
        self._original = _snapshot(self.draft)

    # ----------------------------------------------------------------
    # Voci di prezzo
    # ----------------------------------------------------------------

    def add_item(self) -> QuoteItemDraft:
        """Aggiunge una voce vuota (quantità 1, prezzo 0)."""
        item = QuoteItemDraft()
        self.draft.items.append(item)
        self.draft.refresh_totals()
        return item

    def update_item(self, item_id: str, field: str, value: Any) -> None:
        """
        Modifica un campo di una voce.

        quantity e unit_price vengono convertiti in numeri (input non
        numerici o negativi valgono 0) e il totale della voce è ricalcolato.

        Raises:
            BusinessValidationError: Campo non modificabile
        """
        if field not in ("description", "quantity", "unit_price"):
            raise BusinessValidationError(f"Campo voce non modificabile: {field}")

        item = next((i for i in self.draft.items if i.id == item_id), None)
        if item is None:
            logger.warning("Voce %s non trovata nella bozza", item_id)
            return

        if field == "description":
            item.description = "" if value is None else str(value)
        elif field == "quantity":
            item.quantity = max(0, int(to_decimal(value)))
        else:
            item.unit_price = max(Decimal("0"), to_decimal(value))

        item.total = line_total(item.quantity, item.unit_price)
        self.draft.refresh_totals()

    def remove_item(self, item_id: str) -> None:
        """Rimuove una voce; l'ultima voce rimasta non può essere rimossa."""
        if len(self.draft.items) <= 1:
            return
        self.draft.items = [i for i in self.draft.items if i.id != item_id]
        self.draft.refresh_totals()

    # ----------------------------------------------------------------
    # Imposta
    # ----------------------------------------------------------------

    def set_tax_enabled(self, enabled: bool) -> None:
        self.draft.is_tax_enabled = bool(enabled)
        self.draft.refresh_totals()

    def stage_tax_rate(self, value: Any) -> Decimal:
        """
        Propone una nuova aliquota (frazione, 0.08 = 8%) senza applicarla.
        L'aliquota viene arrotondata a 6 decimali.

        Raises:
            BusinessValidationError: Aliquota fuori dall'intervallo 0-1
        """
        rate = quantize_rate(value)
        if rate < 0 or rate > 1:
            raise BusinessValidationError("L'aliquota deve essere compresa tra 0 e 1")
        self.pending_tax_rate = rate
        return rate

    def confirm_tax_rate(self) -> None:
        """Applica l'aliquota proposta e ricalcola i totali."""
        if self.pending_tax_rate is None:
            return
        self.draft.tax_rate = self.pending_tax_rate
        self.pending_tax_rate = None
        self.draft.refresh_totals()

    def cancel_tax_rate(self) -> None:
        """Scarta l'aliquota proposta: aliquota e totali restano invariati."""
        self.pending_tax_rate = None

    # ----------------------------------------------------------------
    # Piano di pagamento
    # ----------------------------------------------------------------

    def add_payment_term(self) -> PaymentTermDraft:
        """Aggiunge una rata vuota (0%)."""
        entry = PaymentTermDraft(percentage=Decimal("0"), description="")
        self.draft.payment_schedule.append(entry)
        return entry

    def update_payment_term(self, entry_id: str, field: str, value: Any) -> None:
        """
        Modifica percentuale o descrizione di una rata.

        Raises:
            BusinessValidationError: Campo non modificabile
        """
        if field not in ("percentage", "description"):
            raise BusinessValidationError(f"Campo rata non modificabile: {field}")

        entry = next((e for e in self.draft.payment_schedule if e.id == entry_id), None)
        if entry is None:
            logger.warning("Rata %s non trovata nella bozza", entry_id)
            return

        if field == "percentage":
            entry.percentage = quantize(to_decimal(value))
        else:
            entry.description = "" if value is None else str(value)

    def remove_payment_term(self, entry_id: str) -> None:
        """Rimuove una rata, anche l'ultima."""
        self.draft.payment_schedule = [
            e for e in self.draft.payment_schedule if e.id != entry_id
        ]

    @property
    def payment_schedule_total(self) -> Decimal:
        return schedule_total(self.draft.payment_schedule)

    # ----------------------------------------------------------------
    # Altri campi e stato
    # ----------------------------------------------------------------

    def update_fields(self, **changes: Any) -> None:
        """
        Aggiorna i campi semplici della bozza (cliente, numero, note, ...).

        Raises:
            BusinessValidationError: Campo non modificabile
            pydantic.ValidationError: Valore non valido
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise BusinessValidationError(
                f"Campi non modificabili: {', '.join(sorted(unknown))}"
            )
        data = self.draft.model_dump(exclude=_DERIVED_FIELDS)
        data.update(changes)
        self.draft = QuoteDraft.model_validate(data)

    def apply_client(self, client: ClientSuggestion) -> None:
        """Compila nome ed email dal suggerimento scelto."""
        self.draft.client_name = client.name
        self.draft.client_email = client.email

    @property
    def has_unsaved_changes(self) -> bool:
        """True se la bozza differisce dall'ultimo stato caricato o salvato."""
        return _snapshot(self.draft) != self._original

    def dismiss_notification(self) -> None:
        self.notification = None

    def _notify(self, type_: NotificationType, text: str) -> None:
        self.notification = Notification(type=type_, text=text)

    def _mark_clean(self) -> None:
        self._original = _snapshot(self.draft)

    def _apply_loaded(self, loaded: LoadedRevision) -> None:
        self.draft = loaded.draft
        self.current_quote_id = loaded.quote_id
        self.current_revision_id = loaded.revision_id
        self.pending_tax_rate = None
        self._mark_clean()

    def _record_history(self, result: SaveResult, status: QuoteStatus) -> None:
        for entry in self.history:
            entry.is_current = False
        self.history.insert(
            0,
            QuoteHistoryEntry(
                quote_id=result.quote_id,
                quote_number=self.draft.quote_number,
                version_number=1,
                is_current=True,
                notes=self.draft.notes,
                client_name=self.draft.client_name,
                status=status,
            ),
        )

    # ----------------------------------------------------------------
    # Operazioni sul database
    # ----------------------------------------------------------------

    def _after_save(self, result: SaveResult) -> None:
        self.current_quote_id = result.quote_id
        self.current_revision_id = result.revision_id
        self._record_history(result, QuoteStatus.DRAFT)
        self._mark_clean()

    async def _persist(self) -> SaveResult:
        async with self.session_factory() as db:
            result = await self.quote_service.save_quote(db, self.draft)
            await db.commit()
        self._after_save(result)
        return result

    async def save(self) -> Optional[SaveResult]:
        """
        Salva la bozza.

        In caso di errore la bozza resta invariata e la notifica riporta
        la causa.
        """
        if self.is_saving:
            logger.debug("Salvataggio già in corso, richiesta ignorata")
            return None

        self.is_saving = True
        self.notification = None
        try:
            result = await self._persist()
        except AppException as e:
            logger.warning("Salvataggio preventivo fallito: %s", e.detail)
            self._notify(NotificationType.ERROR, f"Errore nel salvataggio: {e.detail}")
            return None
        except SQLAlchemyError as e:
            logger.error("Errore database salvataggio preventivo: %s", e)
            self._notify(NotificationType.ERROR, "Errore nel salvataggio: errore del database")
            return None
        finally:
            self.is_saving = False

        self._notify(NotificationType.SUCCESS, SAVE_SUCCESS_MESSAGE)
        return result

    async def select_quote(self, quote_id: uuid.UUID) -> Optional[LoadedRevision]:
        """Seleziona un preventivo e carica la sua revisione più recente."""
        self.is_loading = True
        try:
            loaded = await self.loader.select_quote(quote_id)
        finally:
            self.is_loading = False

        if loaded is not None:
            self._apply_loaded(loaded)
        elif self.loader.error:
            self._notify(NotificationType.ERROR, self.loader.error)
        return loaded

    async def load_revision(self, revision_id: uuid.UUID) -> Optional[LoadedRevision]:
        """Carica una revisione specifica nella bozza."""
        self.is_loading = True
        try:
            loaded = await self.loader.select_revision(revision_id)
        finally:
            self.is_loading = False

        if loaded is not None:
            self._apply_loaded(loaded)
        elif self.loader.error:
            self._notify(NotificationType.ERROR, self.loader.error)
        return loaded

    async def search_clients(self, term: str) -> list[ClientSuggestion]:
        """Suggerimenti per l'autocompletamento; errori = nessun suggerimento."""
        try:
            async with self.session_factory() as db:
                clients = await self.client_service.search(db, term)
        except SQLAlchemyError as e:
            logger.error("Errore ricerca clienti '%s': %s", term, e)
            return []
        return [ClientSuggestion.model_validate(c) for c in clients]

    async def send_quote_to_client(self) -> Optional[SendQuoteResult]:
        """
        Salva la bozza, invia l'email al cliente e segna la revisione come inviata.

        Richiede email del cliente e numero preventivo.
        """
        if self.is_sending:
            logger.debug("Invio già in corso, richiesta ignorata")
            return None

        try:
            self.quote_service.validate_for_send(self.draft)
        except BusinessValidationError as e:
            self._notify(NotificationType.ERROR, e.detail)
            return None

        self.is_sending = True
        self.notification = None
        try:
            async with self.session_factory() as db:
                result = await self.quote_service.send_quote(
                    db, self.draft, self.email_sender, on_saved=self._after_save
                )
        except AppException as e:
            logger.warning("Invio preventivo fallito: %s", e.detail)
            self._notify(NotificationType.ERROR, f"Errore nell'invio: {e.detail}")
            return None
        except SQLAlchemyError as e:
            logger.error("Errore database invio preventivo: %s", e)
            self._notify(NotificationType.ERROR, "Errore nell'invio: errore del database")
            return None
        finally:
            self.is_sending = False

        self.draft.sent_via_email = True
        self.history[0].status = QuoteStatus.SENT
        self._mark_clean()
        self._notify(NotificationType.SUCCESS, SEND_SUCCESS_MESSAGE)
        return result

    async def reset(self) -> None:
        """
        Nuova bozza vuota con i termini legali predefiniti del proprietario
        e il prossimo numero preventivo.
        """
        legal_terms = ""
        quote_number = settings.default_quote_number
        try:
            async with self.session_factory() as db:
                legal_terms = await self.legal_terms_service.load_default(db, self.owner_id)
                quote_number = await self.quote_service.next_quote_number(db)
        except SQLAlchemyError as e:
            logger.error("Errore caricamento valori predefiniti: %s", e)

        self.loader.reset()
        self.draft = QuoteDraft(
            owner=self.owner_id,
            quote_number=quote_number,
            legal_terms=legal_terms,
        )
        self.pending_tax_rate = None
        self.current_quote_id = None
        self.current_revision_id = None
        self.notification = None
        self._mark_clean()
