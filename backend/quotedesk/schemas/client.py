"""
Schemas Pydantic per l'entità Client
Progetto: Quote Desk (Gestionale Preventivi)
"""
# Definisce gli schemi di validazione e serializzazione per l'API.

import datetime
import re
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------------------------------------------------------
# Funzioni di normalizzazione e validazione
# -------------------------------------------------------------------

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    """Verifica minima del formato email (qualcosa@dominio.tld)."""
    return bool(email) and bool(_EMAIL_RE.match(email))


def synthesize_email(name: str) -> str:
    """
    Email segnaposto ricavata dal nome del cliente.

    "Acme Corp" → "acme.corp@example.com"
    """
    return re.sub(r"\s+", ".", name.strip().lower()) + "@example.com"


# -------------------------------------------------------------------
# Schemas
# -------------------------------------------------------------------

class ClientRead(BaseModel):
    """Schema per la lettura di un cliente."""

    id: uuid.UUID = Field(..., description="UUID del cliente")
    name: str = Field(..., description="Nome o ragione sociale")
    email: str = Field("", description="Indirizzo email")
    created_at: datetime.datetime = Field(..., description="Data/ora creazione")
    updated_at: datetime.datetime = Field(..., description="Data/ora ultimo aggiornamento")

    model_config = ConfigDict(from_attributes=True)


class ClientSuggestion(BaseModel):
    """Suggerimento per l'autocompletamento del cliente."""

    id: uuid.UUID
    name: str
    email: str = ""

    model_config = ConfigDict(from_attributes=True)
