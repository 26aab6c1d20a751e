"""
Modello SQLAlchemy per l'entità Client
Progetto: Quote Desk (Gestionale Preventivi)

Rappresenta l'anagrafica minima dei clienti destinatari dei preventivi.
"""


from __future__ import annotations
from typing import TYPE_CHECKING, List

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models import Base
from quotedesk.models.mixins import TimestampMixin, UUIDMixin

# Import per type hinting relazioni (evita circular import)
if TYPE_CHECKING:
    from quotedesk.models.quote import Quote


class Client(Base, UUIDMixin, TimestampMixin):
    """
    Modello per l'anagrafica clienti.

    Il nome è la chiave di ricerca usata dal salvataggio del preventivo
    (corrispondenza esatta); non è vincolato come unique perché il
    database può essere scritto anche da altri sistemi.

    Attributes:
        id: UUID primary key, generato automaticamente
        name: Nome o ragione sociale (obbligatorio)
        email: Indirizzo email del cliente
        created_at: Data/ora creazione record
        updated_at: Data/ora ultimo aggiornamento

    Relationships:
        quotes: Preventivi intestati al cliente
    """

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Nome o ragione sociale",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        doc="Indirizzo email",
    )

    quotes: Mapped[List["Quote"]] = relationship(
        "Quote",
        back_populates="client",
        doc="Preventivi del cliente",
    )

    __table_args__ = (
        Index("ix_clients_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}')>"
