"""
API Routes
Progetto: Quote Desk (Gestionale Preventivi)

Modulo per l'aggregazione dei router versionati e del punto di ingresso.
"""

from quotedesk.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
