"""
Modelli SQLAlchemy per i Termini Legali
Progetto: Quote Desk (Gestionale Preventivi)

Contiene:
- LegalTerms: Termini legali allegati a una revisione
- DefaultLegalTerms: Testo predefinito per proprietario, precaricato nelle nuove bozze
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotedesk.models import Base
from quotedesk.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from quotedesk.models.quote import QuoteRevision


class LegalTerms(Base, UUIDMixin, TimestampMixin):
    """Termini legali di una revisione (al massimo uno per revisione)."""

    __tablename__ = "legal_terms"

    quote_revision_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quote_revisions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    terms: Mapped[str] = mapped_column(Text, nullable=False)

    revision: Mapped["QuoteRevision"] = relationship(
        "QuoteRevision",
        back_populates="legal_terms",
    )


class DefaultLegalTerms(Base, UUIDMixin, TimestampMixin):
    """
    Termini legali predefiniti di un proprietario.

    Un solo record per owner_id: il salvataggio è un upsert.
    """

    __tablename__ = "default_legal_terms"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        unique=True,
        doc="UUID del proprietario",
    )

    terms: Mapped[str] = mapped_column(Text, nullable=False, default="")
