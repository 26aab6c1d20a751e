"""
Service per l'invio dei preventivi via email.
Progetto: Quote Desk (Gestionale Preventivi)

Nessuna consegna reale: il mittente mock registra il messaggio nel log
dopo un ritardo simulato, in alternativa si costruisce un link mailto:
precompilato da aprire nel client di posta dell'utente.
Oggetto e corpo sono resi con Jinja2.
"""

import asyncio
import datetime
import logging
import os
from decimal import Decimal
from typing import Optional, Protocol
from urllib.parse import quote as url_quote

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel, Field

from quotedesk.core.config import settings

logger = logging.getLogger(__name__)

# Path alla cartella templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)


class QuoteEmailData(BaseModel):
    """Dati necessari per comporre l'email del preventivo."""

    client_name: str = ""
    client_email: str = Field(..., min_length=1)
    quote_number: str = Field(..., min_length=1)
    quote_url: str
    title: str = ""
    total: Optional[Decimal] = None
    expires: Optional[datetime.date] = None
    sender: str = Field(default_factory=lambda: settings.email_sender)


class RenderedEmail(BaseModel):
    """Email pronta per l'invio."""

    to: str
    subject: str
    body: str


def render_quote_email(data: QuoteEmailData) -> RenderedEmail:
    """Rende oggetto e corpo dell'email dai template."""
    context = data.model_dump()
    subject = _env.get_template("quote_email_subject.txt").render(**context).strip()
    body = _env.get_template("quote_email_body.txt").render(**context)
    return RenderedEmail(to=data.client_email, subject=subject, body=body)


def build_mailto_link(data: QuoteEmailData) -> str:
    """
    Link mailto: con oggetto e corpo precompilati.

    Esempio: mailto:acme%40example.com?subject=Preventivo%20n.%201000&body=...
    """
    email = render_quote_email(data)
    return (
        f"mailto:{url_quote(email.to, safe='')}"
        f"?subject={url_quote(email.subject, safe='')}"
        f"&body={url_quote(email.body, safe='')}"
    )


class EmailSender(Protocol):
    """Qualsiasi oggetto in grado di inviare l'email del preventivo."""

    async def send_quote_email(self, data: QuoteEmailData) -> None:
        ...


class MockEmailSender:
    """
    Mittente simulato: attende `delay_seconds` e scrive l'email nel log.

    Tiene traccia dei messaggi inviati in `sent`.
    """

    def __init__(self, delay_seconds: Optional[float] = None) -> None:
        self.delay_seconds = (
            settings.email_mock_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.sent: list[RenderedEmail] = []

    async def send_quote_email(self, data: QuoteEmailData) -> None:
        email = render_quote_email(data)
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        self.sent.append(email)
        logger.info(
            "[MOCK] Email preventivo %s inviata a %s - oggetto: %s",
            data.quote_number, email.to, email.subject,
        )
        logger.debug("[MOCK] Corpo email:\n%s", email.body)


def get_email_sender() -> EmailSender:
    """Dependency per FastAPI: mittente configurato."""
    return MockEmailSender()
