"""
Router FastAPI per l'entità Client
Progetto: Quote Desk (Gestionale Preventivi)

Definisce gli endpoint API per l'elenco e la ricerca dei clienti.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.database import get_db
from quotedesk.schemas.client import ClientRead, ClientSuggestion
from quotedesk.services.client_service import ClientService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/clients",
    tags=["Clienti"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_client_service() -> ClientService:
    """
    Dependency per ottenere un'istanza del ClientService.

    Permette di sostituire il service nei test tramite dependency_overrides.
    """
    return ClientService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    description="Elenco completo dei clienti ordinato per nome.",
    response_model=list[ClientRead],
    status_code=status.HTTP_200_OK,
)
async def get_clients(
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> list[ClientRead]:
    clients = await service.list_all(db)
    return [ClientRead.model_validate(c) for c in clients]


@router.get(
    "/search",
    name="clienti_ricerca",
    summary="Ricerca clienti",
    description="Suggerimenti per l'autocompletamento: almeno 2 caratteri, massimo 10 risultati.",
    response_model=list[ClientSuggestion],
    status_code=status.HTTP_200_OK,
)
async def search_clients(
    q: Optional[str] = Query(None, description="Parte del nome del cliente"),
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> list[ClientSuggestion]:
    """
    Ricerca clienti per nome (case-insensitive).

    Args:
        q: Termine di ricerca; meno di 2 caratteri restituisce una lista vuota
        db: Sessione database
        service: Istanza del ClientService (iniettata automaticamente)
    """
    clients = await service.search(db, q)
    return [ClientSuggestion.model_validate(c) for c in clients]
