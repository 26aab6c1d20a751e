"""
Modelli Database SQLAlchemy
Progetto: Quote Desk (Gestionale Preventivi)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- Client: Anagrafica clienti
- Quote: Preventivi
- QuoteRevision: Revisioni del preventivo
- QuoteItem: Voci di prezzo
- PaymentTerm: Piano di pagamento
- LegalTerms / DefaultLegalTerms: Termini legali
- ClientComment: Commenti e feedback del cliente
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from quotedesk.models.client import Client
from quotedesk.models.quote import ClientComment, PaymentTerm, Quote, QuoteItem, QuoteRevision
from quotedesk.models.legal_terms import DefaultLegalTerms, LegalTerms

__all__ = [
    "Base",
    "Client",
    "Quote",
    "QuoteRevision",
    "QuoteItem",
    "PaymentTerm",
    "LegalTerms",
    "DefaultLegalTerms",
    "ClientComment",
]
