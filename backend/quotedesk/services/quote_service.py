"""
Service Layer per i Preventivi
Progetto: Quote Desk (Gestionale Preventivi)

Definisce la logica di persistenza dei preventivi:
- Salvataggio (upsert) della bozza sulla revisione corrente
- Numerazione progressiva suggerita
- Elenco e caricamento delle revisioni
- Marcatura della revisione come inviata
- Invio al cliente (salvataggio, email, marcatura)
"""

import datetime
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quotedesk.core.config import settings
from quotedesk.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    NotFoundError,
)
from quotedesk.models import (
    ClientComment,
    LegalTerms,
    PaymentTerm,
    Quote,
    QuoteItem,
    QuoteRevision,
)
from quotedesk.schemas.quote import (
    BillingPeriod,
    LoadedRevision,
    PaymentTermDraft,
    QuoteDraft,
    QuoteItemDraft,
    QuoteStatus,
    SaveResult,
    SendQuoteResult,
    default_items,
    default_payment_schedule,
)
from quotedesk.schemas.client import is_valid_email
from quotedesk.services.client_service import ClientService
from quotedesk.services.email_service import EmailSender, QuoteEmailData, build_mailto_link
from quotedesk.services.quote_calculator import (
    line_total,
    percentage_to_rate,
    quantize,
    rate_to_percentage,
    to_decimal,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

CURRENT_REVISION_NUMBER = 1


class QuoteService:
    """
    Service per il salvataggio e la lettura dei preventivi.

    Ogni preventivo ha una sola revisione corrente (numero 1): un nuovo
    salvataggio dello stesso numero preventivo la sovrascrive invece di
    crearne un'altra.

    I metodi eseguono solo flush: commit e rollback spettano al chiamante,
    così l'intero salvataggio avviene in un'unica transazione.
    Fa eccezione send_quote, che conferma il salvataggio prima dell'email.
    """

    def __init__(self, client_service: Optional[ClientService] = None) -> None:
        self.client_service = client_service or ClientService()

    # ----------------------------------------------------------------
    # Validazione
    # ----------------------------------------------------------------

    def validate_draft(self, draft: QuoteDraft) -> None:
        """
        Controlli minimi prima di toccare il database.

        Raises:
            BusinessValidationError: numero preventivo o cliente mancanti,
                oppure bozza senza voci
        """
        if not draft.quote_number.strip():
            raise BusinessValidationError("Il numero preventivo è obbligatorio")
        if not draft.client_name.strip():
            raise BusinessValidationError("Il nome del cliente è obbligatorio")
        if not draft.items:
            raise BusinessValidationError("Il preventivo deve contenere almeno una voce")

    # ----------------------------------------------------------------
    # Salvataggio
    # ----------------------------------------------------------------

    async def save_quote(
        self,
        db: AsyncSession,
        draft: QuoteDraft,
        status: QuoteStatus = QuoteStatus.DRAFT,
    ) -> SaveResult:
        """
        Salva la bozza come revisione corrente del preventivo.

        Passi in sequenza, il primo che fallisce interrompe i successivi:
        1. validazione della bozza
        2. risoluzione del cliente per nome
        3. creazione del preventivo o aggiornamento della revisione corrente
        4. inserimento di voci, rate, termini legali e commento cliente

        Args:
            db: Sessione database
            draft: Bozza da salvare
            status: Stato da assegnare a preventivo e revisione

        Returns:
            SaveResult con gli ID di preventivo, revisione e cliente

        Raises:
            BusinessValidationError: Bozza incompleta
            DuplicateError: Numero preventivo inserito da un salvataggio concorrente
            ConflictError: Errore del database
        """
        self.validate_draft(draft)

        quote_number = draft.quote_number.strip()
        logger.info("Salvataggio preventivo %s per cliente '%s'", quote_number, draft.client_name)

        client = await self.client_service.resolve_for_quote(
            db, draft.client_name, draft.client_email
        )

        try:
            quote = await self.get_by_number(db, quote_number)
            created = quote is None

            if quote is None:
                quote = Quote(
                    quote_number=quote_number,
                    owner_id=draft.owner or settings.default_owner_id,
                    client_id=client.id,
                    status=status.value,
                    current_revision_number=CURRENT_REVISION_NUMBER,
                )
                db.add(quote)
                try:
                    await db.flush()
                except IntegrityError as e:
                    # Numero inserito nel frattempo da un altro salvataggio
                    logger.warning("Numero preventivo %s già esistente: %s", quote_number, e)
                    raise DuplicateError(
                        f"Il numero preventivo {quote_number} esiste già"
                    ) from e
                revision = await self._create_revision(db, quote, draft, status)
                logger.info("Creato preventivo %s (%s)", quote.quote_number, quote.id)
            else:
                quote.client_id = client.id
                quote.status = status.value
                revision = await self._get_current_revision(db, quote)
                if revision is None:
                    logger.warning(
                        "Revisione corrente mancante per preventivo %s, la ricreo",
                        quote.quote_number,
                    )
                    revision = await self._create_revision(db, quote, draft, status)
                else:
                    await self._clear_revision_children(db, revision.id)
                    self._apply_draft(revision, draft, status)
                    await db.flush()
                logger.info("Aggiornato preventivo %s (%s)", quote.quote_number, quote.id)

            await self._insert_revision_children(db, quote, revision, draft)

        except SQLAlchemyError as e:
            logger.error(
                "Errore SQLAlchemy salvataggio preventivo %s: %s - %s",
                quote_number, e.__class__.__name__, e,
            )
            raise ConflictError("Errore del database durante il salvataggio del preventivo") from e

        return SaveResult(
            quote_id=quote.id,
            revision_id=revision.id,
            client_id=client.id,
            created=created,
        )

    async def mark_sent(
        self,
        db: AsyncSession,
        revision_id: uuid.UUID,
        sent_at: Optional[datetime.datetime] = None,
    ) -> QuoteRevision:
        """
        Segna la revisione come inviata via email (stato SENT).

        Raises:
            NotFoundError: Se la revisione non esiste
        """
        revision = await self.get_revision(db, revision_id)
        sent_at = sent_at or datetime.datetime.now(datetime.timezone.utc)

        try:
            revision.sent_via_email = True
            revision.sent_at = sent_at
            revision.status = QuoteStatus.SENT.value
            quote = await db.get(Quote, revision.quote_id)
            if quote is not None:
                quote.status = QuoteStatus.SENT.value
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy marcatura invio revisione %s: %s", revision_id, e)
            raise ConflictError("Errore del database durante la marcatura dell'invio") from e

        logger.info("Revisione %s segnata come inviata il %s", revision_id, sent_at.isoformat())
        return revision

    # ----------------------------------------------------------------
    # Invio al cliente
    # ----------------------------------------------------------------

    def validate_for_send(self, draft: QuoteDraft) -> None:
        """
        Raises:
            BusinessValidationError: email del cliente non valida o numero mancante
        """
        if not is_valid_email(draft.client_email.strip()):
            raise BusinessValidationError("Inserire un'email valida del cliente prima dell'invio")
        if not draft.quote_number.strip():
            raise BusinessValidationError("Inserire il numero preventivo prima dell'invio")

    async def send_quote(
        self,
        db: AsyncSession,
        draft: QuoteDraft,
        sender: EmailSender,
        on_saved: Optional[Callable[[SaveResult], None]] = None,
    ) -> SendQuoteResult:
        """
        Salva la bozza, invia l'email al cliente e segna la revisione come inviata.

        A differenza degli altri metodi esegue commit: il salvataggio viene
        confermato prima dell'invio, quindi se l'email fallisce il preventivo
        resta salvato ma non segnato come inviato. `on_saved` riceve l'esito
        del salvataggio appena confermato.

        Con email_mode="mailto" non invia nulla e restituisce il link mailto:
        precompilato.

        Raises:
            BusinessValidationError: email cliente o numero preventivo mancanti (422)
            DuplicateError / ConflictError: errore del database
            ExternalServiceError: invio email fallito (502)
        """
        self.validate_for_send(draft)

        save_result = await self.save_quote(db, draft)
        await db.commit()
        if on_saved is not None:
            on_saved(save_result)

        data = QuoteEmailData(
            client_name=draft.client_name,
            client_email=draft.client_email.strip(),
            quote_number=draft.quote_number.strip(),
            quote_url=f"{draft.quote_url}?revision={save_result.revision_id}",
            title=draft.title,
            total=draft.total,
            expires=draft.expires,
        )

        mailto_link = None
        if settings.email_mode == "mailto":
            mailto_link = build_mailto_link(data)
        else:
            try:
                await sender.send_quote_email(data)
            except Exception as e:
                logger.error("Invio email preventivo %s fallito: %s", data.quote_number, e)
                raise ExternalServiceError("Invio dell'email non riuscito") from e

        sent_at = datetime.datetime.now(datetime.timezone.utc)
        await self.mark_sent(db, save_result.revision_id, sent_at)
        await db.commit()

        return SendQuoteResult(save=save_result, sent_at=sent_at, mailto_link=mailto_link)

    # ----------------------------------------------------------------
    # Lettura
    # ----------------------------------------------------------------

    async def get_by_number(self, db: AsyncSession, quote_number: str) -> Optional[Quote]:
        """Preventivo con il numero indicato (corrispondenza esatta) o None."""
        result = await db.execute(select(Quote).where(Quote.quote_number == quote_number))
        return result.scalar_one_or_none()

    async def get_by_id(self, db: AsyncSession, quote_id: uuid.UUID) -> Quote:
        """
        Recupera un preventivo tramite ID.

        Raises:
            NotFoundError: Se il preventivo non esiste
        """
        result = await db.execute(
            select(Quote).options(selectinload(Quote.client)).where(Quote.id == quote_id)
        )
        quote = result.scalar_one_or_none()
        if quote is None:
            logger.warning("Preventivo non trovato: %s", quote_id)
            raise NotFoundError(f"Preventivo con ID {quote_id} non trovato")
        return quote

    async def get_revision(self, db: AsyncSession, revision_id: uuid.UUID) -> QuoteRevision:
        """
        Recupera una revisione tramite ID.

        Raises:
            NotFoundError: Se la revisione non esiste
        """
        result = await db.execute(select(QuoteRevision).where(QuoteRevision.id == revision_id))
        revision = result.scalar_one_or_none()
        if revision is None:
            logger.warning("Revisione non trovata: %s", revision_id)
            raise NotFoundError(f"Revisione con ID {revision_id} non trovata")
        return revision

    async def next_quote_number(self, db: AsyncSession) -> str:
        """
        Prossimo numero preventivo suggerito.

        Il più alto numero preventivo numerico + 1; i numeri non numerici
        vengono ignorati. Senza preventivi, o in caso di errore, restituisce
        il numero iniziale configurato.
        """
        try:
            result = await db.execute(select(Quote.quote_number))
            numbers = [n.strip() for n in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Errore lettura numeri preventivo: %s", e)
            return settings.default_quote_number

        numeric = [int(n) for n in numbers if n.isdigit()]
        if not numeric:
            return settings.default_quote_number
        return str(max(numeric) + 1)

    async def list_revisions(self, db: AsyncSession, quote_id: uuid.UUID) -> list[QuoteRevision]:
        """Revisioni del preventivo, dalla più recente."""
        result = await db.execute(
            select(QuoteRevision)
            .where(QuoteRevision.quote_id == quote_id)
            .order_by(QuoteRevision.revision_number.desc(), QuoteRevision.created_at.desc())
        )
        revisions = list(result.scalars().all())
        logger.debug("Trovate %s revisioni per preventivo %s", len(revisions), quote_id)
        return revisions

    async def load_revision(self, db: AsyncSession, revision_id: uuid.UUID) -> LoadedRevision:
        """
        Carica una revisione in una bozza modificabile.

        L'aliquota torna da percentuale a frazione. Una revisione senza voci
        riceve una voce vuota; senza piano di pagamento riceve la rata unica
        al 100%.

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
                selectinload(QuoteRevision.client_comments),
            )
            .where(QuoteRevision.id == revision_id)
            .execution_options(populate_existing=True)
        )
        revision = result.scalar_one_or_none()
        if revision is None:
            logger.warning("Revisione da caricare non trovata: %s", revision_id)
            raise NotFoundError(f"Revisione con ID {revision_id} non trovata")

        draft = self._revision_to_draft(revision)
        logger.info(
            "Caricata revisione %s del preventivo %s", revision.id, revision.quote.quote_number
        )
        return LoadedRevision(quote_id=revision.quote_id, revision_id=revision.id, draft=draft)

    # ----------------------------------------------------------------
    # Metodi privati di supporto
    # ----------------------------------------------------------------

    async def _get_current_revision(
        self, db: AsyncSession, quote: Quote
    ) -> Optional[QuoteRevision]:
        result = await db.execute(
            select(QuoteRevision).where(
                QuoteRevision.quote_id == quote.id,
                QuoteRevision.revision_number == quote.current_revision_number,
            )
        )
        return result.scalar_one_or_none()

    async def _create_revision(
        self,
        db: AsyncSession,
        quote: Quote,
        draft: QuoteDraft,
        status: QuoteStatus,
    ) -> QuoteRevision:
        revision = QuoteRevision(
            quote_id=quote.id,
            revision_number=quote.current_revision_number,
        )
        self._apply_draft(revision, draft, status)
        db.add(revision)
        await db.flush()
        return revision

    def _apply_draft(self, revision: QuoteRevision, draft: QuoteDraft, status: QuoteStatus) -> None:
        """Copia i campi scalari della bozza sulla revisione."""
        revision.status = status.value
        revision.expires_on = draft.expires
        revision.tax_rate = rate_to_percentage(draft.tax_rate)
        revision.is_tax_enabled = draft.is_tax_enabled
        revision.title = draft.title or None
        revision.notes = draft.notes or None
        revision.is_recurring = draft.is_recurring
        revision.billing_period = draft.billing_period.value if draft.billing_period else None
        revision.recurring_amount = draft.recurring_amount if draft.is_recurring else None

    async def _clear_revision_children(self, db: AsyncSession, revision_id: uuid.UUID) -> None:
        """
        Elimina voci, rate, termini legali e commenti interni della revisione.

        I feedback inviati dal cliente (action valorizzata) non vengono toccati.
        """
        await db.execute(delete(QuoteItem).where(QuoteItem.quote_revision_id == revision_id))
        await db.execute(delete(PaymentTerm).where(PaymentTerm.quote_revision_id == revision_id))
        await db.execute(delete(LegalTerms).where(LegalTerms.quote_revision_id == revision_id))
        await db.execute(
            delete(ClientComment).where(
                ClientComment.quote_revision_id == revision_id,
                ClientComment.action.is_(None),
            )
        )
        logger.debug("Eliminati i dettagli della revisione %s", revision_id)

    async def _insert_revision_children(
        self,
        db: AsyncSession,
        quote: Quote,
        revision: QuoteRevision,
        draft: QuoteDraft,
    ) -> None:
        for position, item in enumerate(draft.items):
            db.add(
                QuoteItem(
                    quote_revision_id=revision.id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=line_total(item.quantity, item.unit_price),
                    sort_order=position,
                )
            )

        for position, entry in enumerate(draft.payment_schedule):
            db.add(
                PaymentTerm(
                    quote_revision_id=revision.id,
                    percentage=quantize(to_decimal(entry.percentage)),
                    description=entry.description,
                    sort_order=position,
                )
            )

        if draft.legal_terms.strip():
            db.add(LegalTerms(quote_revision_id=revision.id, terms=draft.legal_terms))

        if draft.client_comments.strip():
            db.add(
                ClientComment(
                    quote_id=quote.id,
                    quote_revision_id=revision.id,
                    client_email=draft.client_email or None,
                    comment=draft.client_comments,
                )
            )

        await db.flush()
        logger.debug(
            "Inserite %s voci e %s rate per la revisione %s",
            len(draft.items), len(draft.payment_schedule), revision.id,
        )

    def _revision_to_draft(self, revision: QuoteRevision) -> QuoteDraft:
        quote = revision.quote
        client = quote.client

        items = [
            QuoteItemDraft(
                id=str(item.id),
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in revision.items
        ] or default_items()

        schedule = [
            PaymentTermDraft(
                id=f"ps-{term.id}",
                percentage=term.percentage,
                description=term.description,
            )
            for term in revision.payment_terms
        ] or default_payment_schedule()

        internal_comments = sorted(
            (c for c in revision.client_comments if c.action is None and c.comment),
            key=lambda c: c.created_at,
        )

        billing_period = None
        if revision.billing_period:
            try:
                billing_period = BillingPeriod(revision.billing_period)
            except ValueError:
                logger.warning(
                    "Periodo di fatturazione sconosciuto '%s' sulla revisione %s",
                    revision.billing_period, revision.id,
                )

        return QuoteDraft(
            owner=quote.owner_id,
            client_name=client.name if client else "",
            client_email=client.email if client else "",
            quote_number=quote.quote_number,
            expires=revision.expires_on,
            is_tax_enabled=revision.is_tax_enabled,
            tax_rate=percentage_to_rate(revision.tax_rate),
            title=revision.title or "",
            notes=revision.notes or "",
            legal_terms=revision.legal_terms[0].terms if revision.legal_terms else "",
            client_comments=internal_comments[-1].comment if internal_comments else "",
            is_recurring=revision.is_recurring,
            billing_period=billing_period,
            recurring_amount=revision.recurring_amount or to_decimal(None),
            items=items,
            payment_schedule=schedule,
            sent_via_email=revision.sent_via_email,
        )
