"""
Tests degli endpoint HTTP con httpx.AsyncClient su ASGITransport.

get_db e il tracciamento sono sostituiti tramite dependency_overrides
per usare il database SQLite di test.
"""

import uuid
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from quotedesk.api.v1.client_view import get_quote_view_service
from quotedesk.core.database import get_db
from quotedesk.main import app
from quotedesk.services.email_service import get_email_sender
from quotedesk.services.quote_view_service import QuoteViewService


@pytest_asyncio.fixture
async def client(session_factory, email_sender):
    """Client HTTP con le dipendenze puntate al database di test."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quote_view_service] = lambda: QuoteViewService(
        session_factory=session_factory, tracking_url=""
    )
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def draft_payload(**overrides):
    payload = {
        "quote_number": "1000",
        "client_name": "Acme",
        "client_email": "billing@acme.test",
        "is_tax_enabled": True,
        "tax_rate": "0.10",
        "items": [{"description": "Sviluppo", "quantity": 2, "unit_price": "100"}],
        "payment_schedule": [
            {"percentage": "50", "description": "Acconto"},
            {"percentage": "50", "description": "Saldo"},
        ],
    }
    payload.update(overrides)
    return payload


# ============================================================
# Tests Preventivi
# ============================================================


class TestQuotesApi:
    """Tests per /api/v1/quotes."""

    @pytest.mark.asyncio
    async def test_recompute(self, client):
        response = await client.post("/api/v1/quotes/draft/recompute", json=draft_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["total"] == "200.00"
        assert data["tax"] == "20.00"
        assert data["total"] == "220.00"
        assert data["payment_schedule_total"] == "100.00"

    @pytest.mark.asyncio
    async def test_save_then_resave(self, client):
        """Test il secondo salvataggio aggiorna la stessa revisione."""
        first = await client.post("/api/v1/quotes/save", json=draft_payload())
        second = await client.post("/api/v1/quotes/save", json=draft_payload(title="Rivisto"))

        assert first.status_code == 200
        assert first.json()["created"] is True
        assert second.json()["created"] is False
        assert second.json()["revision_id"] == first.json()["revision_id"]

        quote_id = first.json()["quote_id"]
        revisions = await client.get(f"/api/v1/quotes/{quote_id}/revisions")
        assert revisions.status_code == 200
        assert len(revisions.json()) == 1
        assert revisions.json()[0]["title"] == "Rivisto"

    @pytest.mark.asyncio
    async def test_save_missing_number(self, client):
        response = await client.post("/api/v1/quotes/save", json=draft_payload(quote_number="  "))

        assert response.status_code == 422
        assert response.json()["error_code"] == "BUSINESS_VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_save_invalid_payload(self, client):
        response = await client.post("/api/v1/quotes/save", json=draft_payload(tax_rate="5"))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_next_number(self, client):
        assert (await client.get("/api/v1/quotes/next-number")).json() == {"quote_number": "1000"}

        await client.post("/api/v1/quotes/save", json=draft_payload(quote_number="1041"))

        assert (await client.get("/api/v1/quotes/next-number")).json() == {"quote_number": "1042"}

    @pytest.mark.asyncio
    async def test_load_revision(self, client):
        saved = (await client.post("/api/v1/quotes/save", json=draft_payload())).json()

        response = await client.get(f"/api/v1/revisions/{saved['revision_id']}")

        assert response.status_code == 200
        draft = response.json()["draft"]
        assert Decimal(draft["tax_rate"]) == Decimal("0.10")
        assert draft["client_name"] == "Acme"
        assert len(draft["payment_schedule"]) == 2

    @pytest.mark.asyncio
    async def test_unknown_ids(self, client):
        assert (await client.get(f"/api/v1/revisions/{uuid.uuid4()}")).status_code == 404
        assert (await client.get(f"/api/v1/quotes/{uuid.uuid4()}/revisions")).status_code == 404

    @pytest.mark.asyncio
    async def test_send(self, client, email_sender):
        response = await client.post("/api/v1/quotes/send", json=draft_payload())

        assert response.status_code == 200
        revision_id = response.json()["save"]["revision_id"]
        assert response.json()["mailto_link"] is None
        assert email_sender.sent[0].to == "billing@acme.test"
        assert revision_id in email_sender.sent[0].body

        revisions = await client.get(f"/api/v1/quotes/{response.json()['save']['quote_id']}/revisions")
        assert revisions.json()[0]["status"] == "SENT"
        assert revisions.json()[0]["sent_via_email"] is True

    @pytest.mark.asyncio
    async def test_send_requires_valid_email(self, client, email_sender):
        response = await client.post("/api/v1/quotes/send", json=draft_payload(client_email="acme"))

        assert response.status_code == 422
        assert email_sender.sent == []


# ============================================================
# Tests Clienti
# ============================================================


class TestClientsApi:
    """Tests per /api/v1/clients."""

    @pytest.mark.asyncio
    async def test_search(self, client):
        await client.post("/api/v1/quotes/save", json=draft_payload())

        assert (await client.get("/api/v1/clients/search", params={"q": "a"})).json() == []
        results = (await client.get("/api/v1/clients/search", params={"q": "ac"})).json()
        assert [r["name"] for r in results] == ["Acme"]

        all_clients = (await client.get("/api/v1/clients/")).json()
        assert all_clients[0]["email"] == "billing@acme.test"


# ============================================================
# Tests Vista cliente e ingresso
# ============================================================


class TestClientViewApi:
    """Tests per la vista cliente, il feedback e il punto di ingresso."""

    @pytest.mark.asyncio
    async def test_client_view(self, client):
        saved = (await client.post("/api/v1/quotes/save", json=draft_payload())).json()

        response = await client.get(f"/api/v1/client-view/{saved['revision_id']}")

        assert response.status_code == 200
        view = response.json()
        assert Decimal(view["tax_rate"]) == Decimal("10")
        assert view["tax"] == "20.00"
        assert view["total"] == "220.00"

        revisions = (await client.get(f"/api/v1/quotes/{saved['quote_id']}/revisions")).json()
        assert revisions[0]["viewed_at"] is not None

    @pytest.mark.asyncio
    async def test_client_view_not_found(self, client):
        response = await client.get(f"/api/v1/client-view/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Preventivo non trovato"

    @pytest.mark.asyncio
    async def test_feedback_flow(self, client):
        saved = (await client.post("/api/v1/quotes/save", json=draft_payload())).json()
        revision_id = saved["revision_id"]

        created = await client.post(
            f"/api/v1/client-view/{revision_id}/feedback",
            json={"client_email": "billing@acme.test", "action": "ACCEPT", "comment": "Va bene"},
        )
        assert created.status_code == 201
        assert created.json()["action"] == "ACCEPT"

        check = await client.get(
            f"/api/v1/client-view/{revision_id}/has-feedback",
            params={"email": "billing@acme.test"},
        )
        assert check.json() == {"has_feedback": True}

        by_quote = (await client.get(f"/api/v1/quotes/{saved['quote_id']}/feedback")).json()
        assert len(by_quote) == 1

    @pytest.mark.asyncio
    async def test_feedback_requires_comment(self, client):
        saved = (await client.post("/api/v1/quotes/save", json=draft_payload())).json()

        response = await client.post(
            f"/api/v1/client-view/{saved['revision_id']}/feedback",
            json={"client_email": "billing@acme.test", "action": "DECLINE", "comment": " "},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_entry_editor_mode(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "editor"
        assert "client_view" not in data
        assert data["draft"]["quote_number"] == "1000"
        assert len(data["draft"]["items"]) == 1

    @pytest.mark.asyncio
    async def test_entry_client_view_mode(self, client):
        saved = (await client.post("/api/v1/quotes/save", json=draft_payload())).json()

        response = await client.get("/", params={"revision": saved["revision_id"]})

        assert response.json()["mode"] == "client_view"
        assert response.json()["client_view"]["quote_number"] == "1000"


# ============================================================
# Tests Termini legali
# ============================================================


class TestLegalTermsApi:
    """Tests per /api/v1/owners/{owner_id}/default-legal-terms."""

    @pytest.mark.asyncio
    async def test_get_and_put(self, client, owner_id):
        url = f"/api/v1/owners/{owner_id}/default-legal-terms"

        assert (await client.get(url)).json()["terms"] == ""

        response = await client.put(url, json={"terms": "Pagamento a 30 giorni"})
        assert response.status_code == 200

        assert (await client.get(url)).json()["terms"] == "Pagamento a 30 giorni"
