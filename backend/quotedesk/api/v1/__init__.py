"""
API v1 Routes
Progetto: Quote Desk (Gestionale Preventivi)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from quotedesk.api.v1 import client_view, clients, legal_terms, quotes

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(clients.router)
api_v1_router.include_router(quotes.router)
api_v1_router.include_router(client_view.router)
api_v1_router.include_router(legal_terms.router)

# Esportazione
__all__ = ["api_v1_router"]
