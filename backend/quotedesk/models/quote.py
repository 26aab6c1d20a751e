"""
Modelli SQLAlchemy per i Preventivi
Progetto: Quote Desk (Gestionale Preventivi)

Contiene:
- Quote: Preventivo identificato dal numero assegnato dall'utente
- QuoteRevision: Revisione (istantanea modificabile) del preventivo
- QuoteItem: Voci di prezzo della revisione
- PaymentTerm: Rate del piano di pagamento della revisione
- ClientComment: Commenti e feedback del cliente sulla revisione
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models import Base
from quotedesk.models.mixins import TimestampMixin, UUIDMixin

# Import per type hinting relazioni (evita circular import)
if TYPE_CHECKING:
    from quotedesk.models.client import Client
    from quotedesk.models.legal_terms import LegalTerms


class Quote(Base, UUIDMixin, TimestampMixin):
    """
    Modello per i preventivi.

    Un preventivo possiede esattamente una revisione "corrente", indicata
    esplicitamente da current_revision_number. Salvare di nuovo aggiorna
    quella revisione invece di aggiungerne una nuova.

    Attributes:
        id: UUID primary key
        quote_number: Numero preventivo assegnato dall'utente (univoco)
        owner_id: UUID del proprietario (utente interno)
        client_id: UUID del cliente destinatario
        status: Stato del preventivo (DRAFT, SENT, APPROVED, REJECTED, EXPIRED)
        current_revision_number: Numero della revisione corrente (sempre 1)

    Relationships:
        client: Cliente destinatario
        revisions: Revisioni del preventivo
    """

    __tablename__ = "quotes"

    quote_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        doc="Numero preventivo assegnato dall'utente",
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        doc="UUID del proprietario del preventivo",
    )

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID del cliente destinatario",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DRAFT",
        doc="Stato: DRAFT, SENT, APPROVED, REJECTED, EXPIRED",
    )

    current_revision_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Puntatore esplicito alla revisione corrente",
    )

    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="quotes",
        doc="Cliente destinatario",
    )

    revisions: Mapped[List["QuoteRevision"]] = relationship(
        "QuoteRevision",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteRevision.revision_number.desc()",
        doc="Revisioni del preventivo",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SENT', 'APPROVED', 'REJECTED', 'EXPIRED')",
            name="chk_quote_status",
        ),
        Index("ix_quotes_client_id", "client_id"),
    )

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, number='{self.quote_number}', status='{self.status}')>"


class QuoteRevision(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le revisioni del preventivo.

    L'aliquota è memorizzata come PERCENTUALE (8.00 = 8%), mentre la bozza
    in memoria la gestisce come frazione (0.08). La conversione avviene
    nel QuoteService.

    Relationships:
        quote: Preventivo padre
        items: Voci di prezzo (ordinate per sort_order)
        payment_terms: Piano di pagamento (ordinato per sort_order)
        legal_terms: Termini legali (al massimo uno)
        client_comments: Commenti e feedback del cliente
    """

    __tablename__ = "quote_revisions"

    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID del preventivo padre",
    )

    revision_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Numero progressivo della revisione",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DRAFT",
        doc="Stato della revisione",
    )

    expires_on: Mapped[Optional[datetime.date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data di scadenza del preventivo",
    )

    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4),
        nullable=False,
        default=Decimal("0.0000"),
        doc="Aliquota fiscale in percentuale (10.0000 = 10%, 8.8750 = 8,875%)",
    )

    is_tax_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Flag applicazione imposta",
    )

    title: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Titolo del preventivo",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note del preventivo",
    )

    is_recurring: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Flag fatturazione ricorrente",
    )

    billing_period: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Periodo di fatturazione ricorrente (weekly, monthly, ...)",
    )

    recurring_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Importo ricorrente",
    )

    sent_via_email: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="True se la revisione è stata inviata via email",
    )

    sent_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora di invio",
    )

    viewed_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora dell'ultima visualizzazione da parte del cliente",
    )

    quote: Mapped["Quote"] = relationship(
        "Quote",
        back_populates="revisions",
    )

    items: Mapped[List["QuoteItem"]] = relationship(
        "QuoteItem",
        back_populates="revision",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
        doc="Voci di prezzo",
    )

    payment_terms: Mapped[List["PaymentTerm"]] = relationship(
        "PaymentTerm",
        back_populates="revision",
        cascade="all, delete-orphan",
        order_by="PaymentTerm.sort_order",
        doc="Piano di pagamento",
    )

    legal_terms: Mapped[List["LegalTerms"]] = relationship(
        "LegalTerms",
        back_populates="revision",
        cascade="all, delete-orphan",
        doc="Termini legali",
    )

    client_comments: Mapped[List["ClientComment"]] = relationship(
        "ClientComment",
        back_populates="revision",
        cascade="all, delete-orphan",
        doc="Commenti del cliente",
    )

    __table_args__ = (
        UniqueConstraint("quote_id", "revision_number", name="uq_quote_revision_number"),
        CheckConstraint("tax_rate >= 0", name="chk_revision_tax_rate_positive"),
    )

    def __repr__(self) -> str:
        return f"<QuoteRevision(id={self.id}, quote_id={self.quote_id}, v{self.revision_number})>"


class QuoteItem(Base, UUIDMixin, TimestampMixin):
    """Voce di prezzo persistita di una revisione."""

    __tablename__ = "quote_items"

    quote_revision_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quote_revisions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="quantity * unit_price, calcolato al salvataggio",
    )

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    revision: Mapped["QuoteRevision"] = relationship(
        "QuoteRevision",
        back_populates="items",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="chk_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="chk_item_unit_price_positive"),
    )


class PaymentTerm(Base, UUIDMixin, TimestampMixin):
    """Rata del piano di pagamento di una revisione."""

    __tablename__ = "payment_terms"

    quote_revision_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quote_revisions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    revision: Mapped["QuoteRevision"] = relationship(
        "QuoteRevision",
        back_populates="payment_terms",
    )


class ClientComment(Base, UUIDMixin, TimestampMixin):
    """
    Commento del cliente su una revisione.

    La stessa tabella ospita sia il testo "commenti cliente" salvato
    dall'utente interno (action NULL) sia il feedback inviato dal cliente
    dalla vista pubblica (action ACCEPT / DECLINE / REQUEST_REVISION).
    I feedback sono append-only: non vengono mai modificati.
    """

    __tablename__ = "client_comments"

    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quote_revision_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quote_revisions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    action: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="ACCEPT, DECLINE, REQUEST_REVISION (NULL per i commenti interni)",
    )

    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    revision: Mapped["QuoteRevision"] = relationship(
        "QuoteRevision",
        back_populates="client_comments",
    )

    __table_args__ = (
        CheckConstraint(
            "action IS NULL OR action IN ('ACCEPT', 'DECLINE', 'REQUEST_REVISION')",
            name="chk_client_comment_action",
        ),
    )
