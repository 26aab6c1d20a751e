"""
Schemas Pydantic per i Preventivi
Progetto: Quote Desk (Gestionale Preventivi)

Contiene:
- Enums: QuoteStatus, BillingPeriod, NotificationType
- Schemas della bozza in memoria: QuoteItemDraft, PaymentTermDraft, QuoteDraft
- Schemas di risposta: SaveResult, QuoteRevisionSummary, QuoteHistoryEntry, Notification
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from quotedesk.core.config import settings
from quotedesk.services.quote_calculator import (
    line_total,
    quantize,
    quantize_rate,
    recompute,
    schedule_is_balanced,
    schedule_total,
    to_decimal,
)


def new_row_id() -> str:
    """Identificativo di riga univoco all'interno della bozza."""
    return uuid.uuid4().hex[:12]


def default_expiry_date() -> datetime.date:
    """Data di scadenza di default: oggi + default_expiry_days."""
    return datetime.date.today() + datetime.timedelta(days=settings.default_expiry_days)


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class QuoteStatus(str, Enum):
    """Stati del preventivo e della revisione."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class BillingPeriod(str, Enum):
    """Periodi di fatturazione ricorrente."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    SEMI_MONTHLY = "semi-monthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi-annually"
    ANNUALLY = "annually"


class NotificationType(str, Enum):
    """Esito di un'operazione mostrato all'utente."""
    SUCCESS = "success"
    ERROR = "error"


# -------------------------------------------------------------------
# Schemas della bozza
# -------------------------------------------------------------------

class QuoteItemDraft(BaseModel):
    """
    Voce di prezzo della bozza.

    Il totale è sempre quantity × unit_price: viene ricalcolato alla
    costruzione e dall'editor a ogni modifica di quantità o prezzo.
    """

    id: str = Field(default_factory=new_row_id, description="ID riga univoco nella bozza")
    description: str = Field("", max_length=2000, description="Descrizione della voce")
    quantity: int = Field(1, ge=0, description="Quantità (intero ≥ 0)")
    unit_price: Decimal = Field(Decimal("0"), ge=0, description="Prezzo unitario")
    total: Decimal = Field(Decimal("0.00"), description="Totale riga (derivato)")

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def sync_total(self) -> "QuoteItemDraft":
        """Riallinea il totale a quantità e prezzo."""
        self.total = line_total(self.quantity, self.unit_price)
        return self


class PaymentTermDraft(BaseModel):
    """Rata del piano di pagamento della bozza."""

    id: str = Field(default_factory=lambda: f"ps-{new_row_id()}", description="ID rata")
    percentage: Decimal = Field(Decimal("0"), description="Percentuale (indicativamente 0-100)")
    description: str = Field("", max_length=1000, description="Descrizione della rata")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("percentage", mode="before")
    @classmethod
    def coerce_percentage(cls, v: Any) -> Decimal:
        """
        Input non numerici diventano 0, come nel campo del form.

        Arrotondata al centesimo, la precisione con cui la rata viene salvata.
        """
        return quantize(to_decimal(v))


def default_items() -> list[QuoteItemDraft]:
    """Una voce vuota: la bozza contiene sempre almeno una voce."""
    return [QuoteItemDraft(id="1", description="", quantity=1, unit_price=Decimal("0"))]


def default_payment_schedule() -> list[PaymentTermDraft]:
    """Rata unica al 100%."""
    return [
        PaymentTermDraft(
            id="ps-1",
            percentage=Decimal("100"),
            description=settings.default_payment_description,
        )
    ]


class QuoteDraft(BaseModel):
    """
    Bozza del preventivo in modifica.

    subtotal, tax e total sono derivati: sono ricalcolati alla costruzione
    e dall'editor dopo ogni modifica di voci, flag imposta o aliquota.
    L'aliquota è una frazione (0.08 = 8%).
    """

    owner: Optional[uuid.UUID] = Field(None, description="UUID del proprietario")
    client_name: str = Field("", max_length=255, description="Nome cliente")
    client_email: str = Field("", max_length=255, description="Email cliente")
    quote_number: str = Field("", max_length=50, description="Numero preventivo")
    quote_url: str = Field(default_factory=lambda: settings.default_quote_url, description="URL preventivo")
    expires: Optional[datetime.date] = Field(default_factory=default_expiry_date, description="Data scadenza")
    is_tax_enabled: bool = Field(False, description="Applica imposta")
    tax_rate: Decimal = Field(
        default_factory=lambda: settings.default_tax_rate,
        ge=0,
        le=1,
        description="Aliquota come frazione",
    )
    title: str = Field("", max_length=255, description="Titolo")
    notes: str = Field("", description="Note")
    legal_terms: str = Field("", description="Termini legali")
    client_comments: str = Field("", description="Commenti cliente")
    is_recurring: bool = Field(False, description="Fatturazione ricorrente")
    billing_period: Optional[BillingPeriod] = Field(None, description="Periodo ricorrenza")
    recurring_amount: Decimal = Field(Decimal("0"), ge=0, description="Importo ricorrente")
    items: list[QuoteItemDraft] = Field(default_factory=default_items, description="Voci")
    payment_schedule: list[PaymentTermDraft] = Field(
        default_factory=default_payment_schedule,
        description="Piano di pagamento",
    )
    sent_via_email: bool = Field(False, description="Revisione già inviata via email")

    subtotal: Decimal = Field(Decimal("0.00"), description="Subtotale (derivato)")
    tax: Decimal = Field(Decimal("0.00"), description="Imposta (derivata)")
    total: Decimal = Field(Decimal("0.00"), description="Totale (derivato)")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tax_rate")
    @classmethod
    def round_tax_rate(cls, v: Decimal) -> Decimal:
        """Aliquota a 6 decimali: la revisione salvata la conserva senza perdite."""
        return quantize_rate(v)

    @field_validator("billing_period", mode="before")
    @classmethod
    def empty_billing_period(cls, v: Any) -> Any:
        """Il form invia stringa vuota quando la ricorrenza non è impostata."""
        if v == "":
            return None
        return v

    @model_validator(mode="after")
    def sync_totals(self) -> "QuoteDraft":
        """Riallinea i totali derivati alle voci."""
        self.refresh_totals()
        return self

    def refresh_totals(self) -> None:
        """Ricalcola subtotal, tax e total dalle voci correnti."""
        totals = recompute(self.items, self.is_tax_enabled, self.tax_rate)
        self.subtotal = totals.subtotal
        self.tax = totals.tax
        self.total = totals.total

    @computed_field
    @property
    def payment_schedule_total(self) -> Decimal:
        """Somma delle percentuali del piano di pagamento."""
        return schedule_total(self.payment_schedule)

    @computed_field
    @property
    def payment_schedule_warning(self) -> bool:
        """True quando il piano non somma a 100 (solo avviso)."""
        return not schedule_is_balanced(self.payment_schedule)


# -------------------------------------------------------------------
# Schemas di risposta
# -------------------------------------------------------------------

class SaveResult(BaseModel):
    """Esito del salvataggio di un preventivo."""

    quote_id: uuid.UUID = Field(..., description="UUID del preventivo")
    revision_id: uuid.UUID = Field(..., description="UUID della revisione corrente")
    client_id: uuid.UUID = Field(..., description="UUID del cliente risolto")
    created: bool = Field(..., description="True se il preventivo è stato creato ora")


class QuoteRevisionSummary(BaseModel):
    """Riga dell'elenco revisioni di un preventivo."""

    id: uuid.UUID
    quote_id: uuid.UUID
    revision_number: int
    status: str
    expires_on: Optional[datetime.date] = None
    title: Optional[str] = None
    sent_via_email: bool = False
    sent_at: Optional[datetime.datetime] = None
    viewed_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class QuoteHistoryEntry(BaseModel):
    """Voce della cronologia locale della sessione di modifica."""

    id: str = Field(default_factory=new_row_id)
    quote_id: uuid.UUID
    quote_number: str
    version_number: int = 1
    date: datetime.date = Field(default_factory=datetime.date.today)
    is_current: bool = True
    notes: str = ""
    client_name: str = ""
    status: QuoteStatus = QuoteStatus.DRAFT

    @computed_field
    @property
    def version(self) -> str:
        """Etichetta versione, es. 'v1'."""
        return f"v{self.version_number}"


class Notification(BaseModel):
    """Messaggio di esito mostrato all'utente."""

    type: NotificationType
    text: str


class NextQuoteNumber(BaseModel):
    """Prossimo numero preventivo disponibile."""

    quote_number: str


class LoadedRevision(BaseModel):
    """Revisione caricata in una bozza modificabile."""

    quote_id: uuid.UUID
    revision_id: uuid.UUID
    draft: QuoteDraft


class SendQuoteResult(BaseModel):
    """Esito dell'invio del preventivo al cliente."""

    save: SaveResult
    sent_at: datetime.datetime
    mailto_link: Optional[str] = Field(None, description="Deep link mailto (solo modalità 'mailto')")
