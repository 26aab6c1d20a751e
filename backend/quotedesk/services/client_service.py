"""
Service Layer per l'entità Client
Progetto: Quote Desk (Gestionale Preventivi)

Definisce la logica di business per la gestione dei clienti:
- Risoluzione del cliente durante il salvataggio del preventivo
- Ricerca per l'autocompletamento
- Elenco completo ordinato per nome
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quotedesk.core.exceptions import ConflictError, NotFoundError
from quotedesk.models import Client
from quotedesk.schemas.client import is_valid_email, synthesize_email

# Logger per questo modulo
logger = logging.getLogger(__name__)

DEFAULT_CLIENT_NAME = "Default Client"
DEFAULT_CLIENT_EMAIL = "default@example.com"
MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 10


class ClientService:
    """
    Service per le operazioni sui clienti.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    Il commit è responsabilità del chiamante: qui si fa solo flush.
    """

    async def get_by_id(self, db: AsyncSession, client_id: uuid.UUID) -> Client:
        """
        Recupera un cliente tramite ID.

        Raises:
            NotFoundError: Se il cliente non esiste
        """
        result = await db.execute(select(Client).where(Client.id == client_id))
        client = result.scalar_one_or_none()

        if client is None:
            logger.warning("Cliente non trovato: %s", client_id)
            raise NotFoundError(f"Cliente con ID {client_id} non trovato")

        return client

    async def find_by_name(self, db: AsyncSession, name: str) -> Optional[Client]:
        """
        Cerca un cliente per nome esatto.

        Se più clienti hanno lo stesso nome viene restituito il primo creato.
        """
        result = await db.execute(
            select(Client)
            .where(Client.name == name)
            .order_by(Client.created_at.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_all(self, db: AsyncSession) -> list[Client]:
        """Elenco completo dei clienti ordinato per nome."""
        result = await db.execute(select(Client).order_by(Client.name.asc()))
        clients = list(result.scalars().all())
        logger.info("Recuperati %s clienti", len(clients))
        return clients

    async def search(self, db: AsyncSession, term: Optional[str]) -> list[Client]:
        """
        Ricerca clienti per nome (case-insensitive, sottostringa).

        Termini più corti di MIN_SEARCH_LENGTH restituiscono una lista vuota
        senza interrogare il database.
        """
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        result = await db.execute(
            select(Client)
            .where(Client.name.ilike(f"%{term}%"))
            .order_by(Client.name.asc())
            .limit(SEARCH_LIMIT)
        )
        clients = list(result.scalars().all())
        logger.debug("Ricerca clienti '%s': %s risultati", term, len(clients))
        return clients

    async def resolve_for_quote(
        self,
        db: AsyncSession,
        name: Optional[str],
        email: Optional[str],
    ) -> Client:
        """
        Risolve il cliente a cui intestare il preventivo.

        - Nome trovato (corrispondenza esatta): riusa il cliente, aggiornando
          l'email se la bozza ne porta una diversa e valida (un'email vuota
          non cancella quella registrata).
        - Nome non trovato: crea il cliente; se l'email manca o non è valida
          ne sintetizza una dal nome (nome.cognome@example.com).
        - Nome ed email vuoti: crea un "Default Client".

        Un preventivo non resta mai senza cliente.

        Raises:
            ConflictError: Se il database genera un errore
        """
        name = (name or "").strip()
        email = (email or "").strip()

        try:
            if name:
                existing = await self.find_by_name(db, name)
                if existing is not None:
                    if email and email != existing.email and is_valid_email(email):
                        logger.info(
                            "Aggiornata email cliente %s: '%s' → '%s'",
                            existing.id, existing.email, email,
                        )
                        existing.email = email
                        await db.flush()
                    logger.debug("Riutilizzato cliente esistente: %s - %s", existing.id, existing.name)
                    return existing

                if not is_valid_email(email):
                    if email:
                        logger.warning(
                            "Email cliente non valida '%s', uso indirizzo sintetico", email
                        )
                    email = synthesize_email(name)
                return await self._create(db, name, email)

            if email:
                # Solo email: il cliente viene comunque creato con un nome di ripiego
                fallback_email = email if is_valid_email(email) else DEFAULT_CLIENT_EMAIL
                return await self._create(db, DEFAULT_CLIENT_NAME, fallback_email)

            logger.info("Nessun cliente indicato, creo cliente di default")
            return await self._create(db, DEFAULT_CLIENT_NAME, DEFAULT_CLIENT_EMAIL)

        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy risoluzione cliente: %s - %s", e.__class__.__name__, e)
            raise ConflictError("Errore del database durante la risoluzione del cliente") from e

    # ----------------------------------------------------------------
    # Metodi privati di supporto
    # ----------------------------------------------------------------

    async def _create(self, db: AsyncSession, name: str, email: str) -> Client:
        client = Client(name=name, email=email)
        db.add(client)
        await db.flush()
        logger.info("Creato nuovo cliente: %s - %s (%s)", client.id, client.name, client.email)
        return client
