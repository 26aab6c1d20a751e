"""
Schemas Pydantic per i termini legali predefiniti
Progetto: Quote Desk (Gestionale Preventivi)
"""

import uuid

from pydantic import BaseModel, Field


class DefaultLegalTermsUpdate(BaseModel):
    """Testo dei termini legali predefiniti."""

    terms: str = Field("", max_length=20000, description="Testo dei termini legali")


class DefaultLegalTermsRead(BaseModel):
    """Termini legali predefiniti di un proprietario (stringa vuota se assenti)."""

    owner_id: uuid.UUID
    terms: str = ""
