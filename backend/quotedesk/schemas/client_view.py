"""
Schemas Pydantic per la vista pubblica del cliente e il feedback
Progetto: Quote Desk (Gestionale Preventivi)

Contiene:
- Enum: FeedbackAction
- Schemas della vista in sola lettura: ClientViewItem, ClientViewPaymentTerm, ClientQuoteView
- Schemas del feedback: FeedbackCreate, FeedbackRead, FeedbackCheck
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from quotedesk.schemas.quote import QuoteDraft
from quotedesk.services.quote_calculator import recompute_from_percentage


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class FeedbackAction(str, Enum):
    """Azioni disponibili al cliente sulla revisione."""
    ACCEPT = "ACCEPT"
    DECLINE = "DECLINE"
    REQUEST_REVISION = "REQUEST_REVISION"


# -------------------------------------------------------------------
# Vista in sola lettura
# -------------------------------------------------------------------

class ClientViewItem(BaseModel):
    """Voce del preventivo mostrata al cliente."""

    description: str = ""
    quantity: int
    unit_price: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class ClientViewPaymentTerm(BaseModel):
    """Rata del piano di pagamento mostrata al cliente."""

    percentage: Decimal
    description: str = ""

    model_config = ConfigDict(from_attributes=True)


class ClientQuoteView(BaseModel):
    """
    Revisione del preventivo vista dal cliente.

    I totali sono calcolati solo per la visualizzazione a partire dalle
    voci persistite; l'aliquota è in percentuale (10 = 10%).
    """

    revision_id: uuid.UUID
    quote_id: uuid.UUID
    quote_number: str
    revision_number: int
    status: str
    client_name: str = ""
    client_email: str = ""
    title: Optional[str] = None
    notes: Optional[str] = None
    legal_terms: Optional[str] = None
    expires_on: Optional[datetime.date] = None
    created_at: Optional[datetime.datetime] = None
    is_tax_enabled: bool = False
    tax_rate: Decimal = Decimal("0")
    is_recurring: bool = False
    billing_period: Optional[str] = None
    recurring_amount: Optional[Decimal] = None
    items: list[ClientViewItem] = Field(default_factory=list)
    payment_terms: list[ClientViewPaymentTerm] = Field(default_factory=list)

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        """Somma dei totali delle voci."""
        return recompute_from_percentage(self.items, self.is_tax_enabled, self.tax_rate).subtotal

    @computed_field
    @property
    def tax(self) -> Decimal:
        """Imposta: subtotale × aliquota/100 se abilitata."""
        return recompute_from_percentage(self.items, self.is_tax_enabled, self.tax_rate).tax

    @computed_field
    @property
    def total(self) -> Decimal:
        """Subtotale + imposta."""
        return recompute_from_percentage(self.items, self.is_tax_enabled, self.tax_rate).total


# -------------------------------------------------------------------
# Feedback del cliente
# -------------------------------------------------------------------

class FeedbackCreate(BaseModel):
    """Feedback inviato dal cliente dalla vista pubblica."""

    client_email: str = Field(..., min_length=1, max_length=255, description="Email del cliente")
    action: FeedbackAction = Field(FeedbackAction.ACCEPT, description="Azione scelta")
    comment: str = Field(..., max_length=5000, description="Commento (obbligatorio)")

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, v: str) -> str:
        """Un feedback senza commento non viene inviato."""
        v = v.strip()
        if not v:
            raise ValueError("Il commento è obbligatorio")
        return v


class FeedbackRead(BaseModel):
    """Feedback persistito."""

    id: uuid.UUID
    quote_id: uuid.UUID
    quote_revision_id: uuid.UUID
    client_email: Optional[str] = None
    action: Optional[FeedbackAction] = None
    comment: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class FeedbackCheck(BaseModel):
    """Risposta alla verifica 'il cliente ha già lasciato un feedback?'."""

    has_feedback: bool


class EntryResponse(BaseModel):
    """
    Risposta del punto di ingresso dell'applicazione.

    Con il parametro `revision` restituisce la vista cliente, altrimenti
    una bozza vuota per il form di modifica.
    """

    mode: str = Field(..., description="'client_view' oppure 'editor'")
    client_view: Optional[ClientQuoteView] = None
    draft: Optional[QuoteDraft] = None
