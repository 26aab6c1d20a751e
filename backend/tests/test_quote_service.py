"""
Tests per QuoteService e ClientService.

Il salvataggio viene verificato su SQLite in memoria; i percorsi di
errore del database usano il mock di AsyncSession.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from quotedesk.core.config import settings
from quotedesk.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    DuplicateError,
    NotFoundError,
)
from quotedesk.models import Client, ClientComment, LegalTerms, PaymentTerm, Quote, QuoteItem, QuoteRevision
from quotedesk.schemas.quote import PaymentTermDraft, QuoteItemDraft
from quotedesk.services.client_service import ClientService
from quotedesk.services.quote_service import QuoteService


async def count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


# ============================================================
# Tests per la validazione
# ============================================================


class TestValidateDraft:
    """Tests per QuoteService.validate_draft."""

    @pytest.mark.asyncio
    async def test_missing_quote_number(self, mock_db, acme_draft):
        """Test numero preventivo obbligatorio, nessuna query eseguita."""
        acme_draft.quote_number = "  "

        with pytest.raises(BusinessValidationError, match="numero preventivo"):
            await QuoteService().save_quote(mock_db, acme_draft)

        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_client_name(self, mock_db, acme_draft):
        acme_draft.client_name = ""

        with pytest.raises(BusinessValidationError, match="cliente"):
            await QuoteService().save_quote(mock_db, acme_draft)

        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_items(self, mock_db, acme_draft):
        acme_draft.items = []

        with pytest.raises(BusinessValidationError, match="almeno una voce"):
            await QuoteService().save_quote(mock_db, acme_draft)

        mock_db.execute.assert_not_awaited()


# ============================================================
# Tests per il salvataggio
# ============================================================


class TestSaveQuote:
    """Tests per QuoteService.save_quote."""

    @pytest.mark.asyncio
    async def test_create_new_quote(self, db, acme_draft):
        """Test nuovo preventivo: un cliente, un preventivo, una revisione, una voce."""
        result = await QuoteService().save_quote(db, acme_draft)
        await db.commit()

        assert result.created is True
        assert acme_draft.subtotal == Decimal("100.00")
        assert acme_draft.tax == Decimal("0.00")
        assert acme_draft.total == Decimal("100.00")

        assert await count(db, Client) == 1
        assert await count(db, Quote) == 1
        assert await count(db, QuoteRevision) == 1
        assert await count(db, QuoteItem) == 1

        revision = await db.get(QuoteRevision, result.revision_id)
        assert revision.revision_number == 1
        assert revision.status == "DRAFT"

        quote = await db.get(Quote, result.quote_id)
        assert quote.quote_number == "1000"
        assert quote.current_revision_number == 1

    @pytest.mark.asyncio
    async def test_resave_updates_revision_in_place(self, session_factory, acme_draft):
        """Test secondo salvataggio con quantità 3: nessun nuovo preventivo o revisione."""
        async with session_factory() as db:
            first = await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        acme_draft.items[0] = QuoteItemDraft(
            id=acme_draft.items[0].id, description="Consulenza", quantity=3, unit_price=Decimal("50")
        )
        acme_draft.refresh_totals()

        async with session_factory() as db:
            second = await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        assert second.created is False
        assert second.quote_id == first.quote_id
        assert second.revision_id == first.revision_id

        async with session_factory() as db:
            assert await count(db, Quote) == 1
            assert await count(db, QuoteRevision) == 1
            items = (await db.execute(select(QuoteItem))).scalars().all()
            assert len(items) == 1
            assert items[0].quantity == 3
            assert items[0].total == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_children_persisted_in_order(self, db, acme_draft):
        """Test voci e rate salvate con sort_order = posizione."""
        acme_draft.items.append(QuoteItemDraft(description="Sviluppo", quantity=1, unit_price=Decimal("10")))
        acme_draft.payment_schedule = [
            PaymentTermDraft(percentage=60, description="Acconto"),
            PaymentTermDraft(percentage=30, description="Saldo"),
        ]
        acme_draft.legal_terms = "Foro competente: Milano"
        acme_draft.client_comments = "Richiesta consegna entro fine mese"

        result = await QuoteService().save_quote(db, acme_draft)
        await db.commit()

        items = (
            await db.execute(select(QuoteItem).order_by(QuoteItem.sort_order))
        ).scalars().all()
        assert [(i.description, i.sort_order) for i in items] == [("Consulenza", 0), ("Sviluppo", 1)]

        terms = (
            await db.execute(select(PaymentTerm).order_by(PaymentTerm.sort_order))
        ).scalars().all()
        assert [t.percentage for t in terms] == [Decimal("60"), Decimal("30")]

        legal = (await db.execute(select(LegalTerms))).scalar_one()
        assert legal.quote_revision_id == result.revision_id

        comment = (await db.execute(select(ClientComment))).scalar_one()
        assert comment.action is None
        assert comment.quote_id == result.quote_id

    @pytest.mark.asyncio
    async def test_blank_legal_terms_and_comments_not_inserted(self, db, acme_draft):
        await QuoteService().save_quote(db, acme_draft)

        assert await count(db, LegalTerms) == 0
        assert await count(db, ClientComment) == 0

    @pytest.mark.asyncio
    async def test_tax_rate_stored_as_percentage(self, db, acme_draft):
        acme_draft.is_tax_enabled = True
        acme_draft.tax_rate = Decimal("0.08")

        result = await QuoteService().save_quote(db, acme_draft)

        revision = await db.get(QuoteRevision, result.revision_id)
        assert revision.tax_rate == Decimal("8.00")
        assert revision.is_tax_enabled is True

    @pytest.mark.asyncio
    async def test_resave_keeps_client_feedback(self, session_factory, acme_draft):
        """Test il feedback del cliente sopravvive alla sovrascrittura della revisione."""
        async with session_factory() as db:
            result = await QuoteService().save_quote(db, acme_draft)
            db.add(
                ClientComment(
                    quote_id=result.quote_id,
                    quote_revision_id=result.revision_id,
                    client_email="billing@acme.test",
                    action="ACCEPT",
                    comment="Va bene",
                )
            )
            await db.commit()

        async with session_factory() as db:
            await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        async with session_factory() as db:
            comments = (await db.execute(select(ClientComment))).scalars().all()
            assert [c.action for c in comments] == ["ACCEPT"]

    @pytest.mark.asyncio
    async def test_default_owner(self, db, acme_draft):
        acme_draft.owner = None

        result = await QuoteService().save_quote(db, acme_draft)

        quote = await db.get(Quote, result.quote_id)
        assert quote.owner_id == settings.default_owner_id

    @pytest.mark.asyncio
    async def test_schedule_not_summing_to_100_still_saves(self, db, acme_draft):
        acme_draft.payment_schedule = [PaymentTermDraft(percentage=60), PaymentTermDraft(percentage=30)]

        result = await QuoteService().save_quote(db, acme_draft)

        assert result.created is True
        assert acme_draft.payment_schedule_warning is True

    @pytest.mark.asyncio
    async def test_store_failure_after_client_resolved(self, session_factory, acme_draft):
        """Test errore del database sulle voci: ConflictError e nessuna riga confermata."""
        failure = OperationalError("INSERT", {}, Exception("disk I/O error"))

        with patch.object(QuoteService, "_insert_revision_children", AsyncMock(side_effect=failure)):
            async with session_factory() as db:
                with pytest.raises(ConflictError):
                    await QuoteService().save_quote(db, acme_draft)

        async with session_factory() as db:
            assert await count(db, Client) == 0
            assert await count(db, Quote) == 0
            assert await count(db, QuoteRevision) == 0

    @pytest.mark.asyncio
    async def test_number_taken_concurrently(self, session_factory, acme_draft):
        """Test numero inserito da un altro salvataggio tra ricerca e inserimento."""
        async with session_factory() as db:
            await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        with patch.object(QuoteService, "get_by_number", AsyncMock(return_value=None)):
            async with session_factory() as db:
                with pytest.raises(DuplicateError):
                    await QuoteService().save_quote(db, acme_draft)

        async with session_factory() as db:
            assert await count(db, Quote) == 1


# ============================================================
# Tests per la risoluzione del cliente
# ============================================================


class TestResolveClient:
    """Tests per ClientService.resolve_for_quote."""

    @pytest.mark.asyncio
    async def test_synthesized_email_when_missing(self, db):
        """Test email sintetica dal nome: 'Acme Corp' → acme.corp@example.com."""
        client = await ClientService().resolve_for_quote(db, "Acme  Corp", "")
        assert client.name == "Acme  Corp"
        assert client.email == "acme.corp@example.com"

    @pytest.mark.asyncio
    async def test_invalid_email_replaced(self, db):
        client = await ClientService().resolve_for_quote(db, "Beta", "non-una-email")
        assert client.email == "beta@example.com"

    @pytest.mark.asyncio
    async def test_default_client_when_blank(self, db):
        client = await ClientService().resolve_for_quote(db, "", "")
        assert client.name == "Default Client"
        assert client.email == "default@example.com"

    @pytest.mark.asyncio
    async def test_existing_client_reused_and_email_updated(self, db):
        service = ClientService()
        first = await service.resolve_for_quote(db, "Acme", "old@acme.test")
        second = await service.resolve_for_quote(db, "Acme", "new@acme.test")

        assert second.id == first.id
        assert second.email == "new@acme.test"
        assert await count(db, Client) == 1

    @pytest.mark.asyncio
    async def test_existing_client_invalid_email_ignored(self, db):
        service = ClientService()
        await service.resolve_for_quote(db, "Acme", "old@acme.test")
        client = await service.resolve_for_quote(db, "Acme", "rotta")

        assert client.email == "old@acme.test"

    @pytest.mark.asyncio
    async def test_existing_client_blank_email_kept(self, db):
        """Test un'email vuota nella bozza non cancella quella registrata."""
        service = ClientService()
        await service.resolve_for_quote(db, "Acme", "old@acme.test")
        client = await service.resolve_for_quote(db, "Acme", "  ")

        assert client.email == "old@acme.test"


class TestClientSearch:
    """Tests per ClientService.search e list_all."""

    @pytest.mark.asyncio
    async def test_short_term_skips_query(self, mock_db):
        """Test meno di 2 caratteri: lista vuota senza interrogare il database."""
        assert await ClientService().search(mock_db, "a") == []
        assert await ClientService().search(mock_db, None) == []
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, db):
        for name in ["Acme", "ACME Italia", "Beta", "Gamma"]:
            db.add(Client(name=name, email=""))
        await db.flush()

        names = [c.name for c in await ClientService().search(db, "acm")]
        assert sorted(names) == ["ACME Italia", "Acme"]

    @pytest.mark.asyncio
    async def test_search_limit(self, db):
        for i in range(15):
            db.add(Client(name=f"Cliente {i:02d}", email=""))
        await db.flush()

        assert len(await ClientService().search(db, "cliente")) == 10

    @pytest.mark.asyncio
    async def test_list_all_ordered_by_name(self, db):
        for name in ["Zeta", "Alfa", "Mu"]:
            db.add(Client(name=name, email=""))
        await db.flush()

        assert [c.name for c in await ClientService().list_all(db)] == ["Alfa", "Mu", "Zeta"]


# ============================================================
# Tests per numerazione e revisioni
# ============================================================


class TestNextQuoteNumber:
    """Tests per QuoteService.next_quote_number."""

    @pytest.mark.asyncio
    async def test_default_when_empty(self, db):
        assert await QuoteService().next_quote_number(db) == "1000"

    @pytest.mark.asyncio
    async def test_highest_numeric_plus_one(self, db, acme_draft):
        service = QuoteService()
        for number in ["1000", "1041", "PRE-9999", "998"]:
            acme_draft.quote_number = number
            await service.save_quote(db, acme_draft)

        assert await service.next_quote_number(db) == "1042"

    @pytest.mark.asyncio
    async def test_default_on_database_error(self, mock_db):
        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        assert await QuoteService().next_quote_number(mock_db) == "1000"


class TestLoadRevision:
    """Tests per QuoteService.list_revisions e load_revision."""

    @pytest.mark.asyncio
    async def test_round_trip_into_draft(self, session_factory, acme_draft):
        """Test revisione caricata in bozza con aliquota riconvertita in frazione."""
        acme_draft.is_tax_enabled = True
        acme_draft.tax_rate = Decimal("0.10")
        acme_draft.legal_terms = "Condizioni generali"
        acme_draft.title = "Sito web"
        acme_draft.refresh_totals()

        async with session_factory() as db:
            saved = await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        async with session_factory() as db:
            loaded = await QuoteService().load_revision(db, saved.revision_id)

        draft = loaded.draft
        assert loaded.quote_id == saved.quote_id
        assert draft.quote_number == "1000"
        assert draft.client_name == "Acme"
        assert draft.tax_rate == Decimal("0.1")
        assert draft.legal_terms == "Condizioni generali"
        assert draft.title == "Sito web"
        assert draft.total == Decimal("110.00")

    @pytest.mark.asyncio
    async def test_fractional_tax_rate_round_trip(self, session_factory, acme_draft):
        """Test aliquota 8,875% su 1000: totale 1088.75 prima e dopo il salvataggio."""
        acme_draft.is_tax_enabled = True
        acme_draft.tax_rate = Decimal("0.08875")
        acme_draft.items = [QuoteItemDraft(quantity=1, unit_price=Decimal("1000"))]
        acme_draft.refresh_totals()
        assert acme_draft.total == Decimal("1088.75")

        async with session_factory() as db:
            saved = await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        async with session_factory() as db:
            revision = await db.get(QuoteRevision, saved.revision_id)
            loaded = await QuoteService().load_revision(db, saved.revision_id)

        assert revision.tax_rate == Decimal("8.875")
        assert loaded.draft.tax_rate == Decimal("0.08875")
        assert loaded.draft.tax == Decimal("88.75")
        assert loaded.draft.total == Decimal("1088.75")

    @pytest.mark.asyncio
    async def test_schedule_warning_survives_reload(self, session_factory, acme_draft):
        """Test rate da 33.333: l'avviso di sbilanciamento è lo stesso dopo il caricamento."""
        acme_draft.payment_schedule = [PaymentTermDraft(percentage="33.333") for _ in range(3)]
        acme_draft.refresh_totals()
        assert acme_draft.payment_schedule_warning is True

        async with session_factory() as db:
            saved = await QuoteService().save_quote(db, acme_draft)
            await db.commit()

        async with session_factory() as db:
            loaded = await QuoteService().load_revision(db, saved.revision_id)

        assert [t.percentage for t in loaded.draft.payment_schedule] == [Decimal("33.33")] * 3
        assert loaded.draft.payment_schedule_total == acme_draft.payment_schedule_total
        assert loaded.draft.payment_schedule_warning is True

    @pytest.mark.asyncio
    async def test_defaults_for_empty_revision(self, db):
        """Test revisione senza voci né rate: voce vuota e rata unica al 100%."""
        client = Client(name="Acme", email="")
        db.add(client)
        await db.flush()
        quote = Quote(quote_number="77", owner_id=uuid.uuid4(), client_id=client.id)
        db.add(quote)
        await db.flush()
        revision = QuoteRevision(quote_id=quote.id, revision_number=1)
        db.add(revision)
        await db.flush()

        loaded = await QuoteService().load_revision(db, revision.id)

        assert len(loaded.draft.items) == 1
        assert loaded.draft.items[0].unit_price == Decimal("0")
        assert len(loaded.draft.payment_schedule) == 1
        assert loaded.draft.payment_schedule[0].percentage == Decimal("100")
        assert loaded.draft.payment_schedule[0].description == "net 30 days"

    @pytest.mark.asyncio
    async def test_missing_revision(self, db):
        with pytest.raises(NotFoundError):
            await QuoteService().load_revision(db, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_revisions(self, db, acme_draft):
        saved = await QuoteService().save_quote(db, acme_draft)

        revisions = await QuoteService().list_revisions(db, saved.quote_id)

        assert [r.id for r in revisions] == [saved.revision_id]


class TestMarkSent:
    """Tests per QuoteService.mark_sent."""

    @pytest.mark.asyncio
    async def test_mark_sent(self, db, acme_draft):
        saved = await QuoteService().save_quote(db, acme_draft)

        revision = await QuoteService().mark_sent(db, saved.revision_id)

        assert revision.sent_via_email is True
        assert revision.sent_at is not None
        assert revision.status == "SENT"
        quote = await db.get(Quote, saved.quote_id)
        assert quote.status == "SENT"

    @pytest.mark.asyncio
    async def test_mark_sent_missing_revision(self, db):
        with pytest.raises(NotFoundError):
            await QuoteService().mark_sent(db, uuid.uuid4())


class TestSendQuote:
    """Tests per QuoteService.send_quote."""

    @pytest.mark.asyncio
    async def test_send_saves_then_marks_sent(self, session_factory, acme_draft, email_sender):
        saved = []

        async with session_factory() as db:
            result = await QuoteService().send_quote(db, acme_draft, email_sender, on_saved=saved.append)

        assert saved == [result.save]
        assert result.mailto_link is None
        assert f"revision={result.save.revision_id}" in email_sender.sent[0].body

        async with session_factory() as db:
            revision = await db.get(QuoteRevision, result.save.revision_id)
            assert revision.status == "SENT"
            assert revision.sent_at is not None

    @pytest.mark.asyncio
    async def test_invalid_email_blocks_before_save(self, session_factory, acme_draft, email_sender):
        acme_draft.client_email = "acme"

        async with session_factory() as db:
            with pytest.raises(BusinessValidationError):
                await QuoteService().send_quote(db, acme_draft, email_sender)
            assert await count(db, Quote) == 0

        assert email_sender.sent == []
