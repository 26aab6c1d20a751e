import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare quotedesk.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from quotedesk.core.database import engine
from quotedesk.models import Base


async def reset():
    print("Connessione al database, eliminazione tabelle preventivi...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione di clients, quotes, quote_revisions e dettagli...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database preventivi resettato con successo!")


if __name__ == "__main__":
    asyncio.run(reset())
