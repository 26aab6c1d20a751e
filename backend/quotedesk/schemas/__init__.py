"""
Schemas Pydantic per il progetto Quote Desk

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
della bozza e la serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from quotedesk.schemas import QuoteDraft, ClientRead, etc.

from quotedesk.schemas.client import ClientRead, ClientSuggestion
from quotedesk.schemas.quote import (
    BillingPeriod,
    LoadedRevision,
    NextQuoteNumber,
    Notification,
    NotificationType,
    PaymentTermDraft,
    QuoteDraft,
    QuoteHistoryEntry,
    QuoteItemDraft,
    QuoteRevisionSummary,
    QuoteStatus,
    SaveResult,
    SendQuoteResult,
)
from quotedesk.schemas.client_view import (
    ClientQuoteView,
    EntryResponse,
    FeedbackAction,
    FeedbackCheck,
    FeedbackCreate,
    FeedbackRead,
)
from quotedesk.schemas.legal_terms import DefaultLegalTermsRead, DefaultLegalTermsUpdate

__all__ = [
    # Client
    "ClientRead",
    "ClientSuggestion",
    # Quote
    "BillingPeriod",
    "LoadedRevision",
    "NextQuoteNumber",
    "Notification",
    "NotificationType",
    "PaymentTermDraft",
    "QuoteDraft",
    "QuoteHistoryEntry",
    "QuoteItemDraft",
    "QuoteRevisionSummary",
    "QuoteStatus",
    "SaveResult",
    "SendQuoteResult",
    # Client view
    "ClientQuoteView",
    "EntryResponse",
    "FeedbackAction",
    "FeedbackCheck",
    "FeedbackCreate",
    "FeedbackRead",
    # Legal terms
    "DefaultLegalTermsRead",
    "DefaultLegalTermsUpdate",
]
