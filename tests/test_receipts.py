"""Tests for receipt storage, cleanup and recognizer payload parsing."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from expense_workflow.events import EventEmitter, ReceiptPurgeFailed
from expense_workflow.integrations import (
    InMemoryReceiptStorage,
    ReceiptGuess,
    purge_receipts,
)


class TestInMemoryStorage:
    def test_upload_target(self):
        storage = InMemoryReceiptStorage("https://files.test/", ttl_seconds=120)
        owner = uuid4()

        target = storage.issue_upload_target("image/jpeg", owner)

        assert target.public_reference.startswith(f"https://files.test/{owner}/")
        assert target.public_reference.endswith(".jpeg")
        assert target.upload_url.startswith(target.public_reference + "?")
        assert target.expires_in_seconds == 120
        assert storage.key_for(target.public_reference) in storage.objects

    def test_unknown_extension(self):
        target = InMemoryReceiptStorage("https://files.test").issue_upload_target("blob", uuid4())
        assert target.public_reference.endswith(".bin")

    def test_delete_skips_foreign_references(self):
        storage = InMemoryReceiptStorage("https://files.test")
        target = storage.issue_upload_target("image/png", uuid4())

        storage.delete([target.public_reference, "https://elsewhere.test/x.png"])

        assert storage.objects == set()
        assert storage.deleted == [target.public_reference]


class TestPurgeReceipts:
    def test_purge_deduplicates(self):
        storage = InMemoryReceiptStorage("https://files.test")
        ref = storage.issue_upload_target("image/png", uuid4()).public_reference

        assert purge_receipts(storage, [ref, ref, ""]) is True
        assert storage.deleted == [ref]

    def test_nothing_to_purge(self):
        storage = InMemoryReceiptStorage(fail_deletes=True)
        assert purge_receipts(storage, []) is True

    def test_failure_is_reported_not_raised(self, caplog):
        storage = InMemoryReceiptStorage("https://files.test", fail_deletes=True)
        emitter = EventEmitter()
        failures = []
        emitter.on(ReceiptPurgeFailed, failures.append)
        actor = uuid4()

        ok = purge_receipts(storage, ["https://files.test/a.png"], emitter, actor)

        assert ok is False
        assert failures[0].references == ("https://files.test/a.png",)
        assert failures[0].metadata.actor_id == actor
        assert "receipt storage unavailable" in failures[0].error
        assert any(r.levelname == "ERROR" for r in caplog.records)


class TestReceiptGuess:
    def test_full_payload(self):
        guess = ReceiptGuess.from_payload(
            {
                "amount": "545.00",
                "date": "2026-02-14",
                "category": "airfare",
                "invoice_number": "0042",
                "is_vat_special": True,
                "tax_rate": 9,
                "seller": "China Eastern",
            }
        )

        assert guess.amount == Decimal("545.00")
        assert guess.expense_date == date(2026, 2, 14)
        assert guess.is_vat_invoice is True
        assert guess.tax_rate == Decimal("9")
        assert guess.seller == "China Eastern"

    def test_garbage_fields_dropped(self):
        guess = ReceiptGuess.from_payload(
            {
                "amount": "about twenty",
                "date": "14/02/2026",
                "category": "  ",
                "is_vat_special": "maybe",
                "tax_rate": "NaN",
            }
        )

        assert guess == ReceiptGuess()

    def test_datetime_string_truncated_to_date(self):
        guess = ReceiptGuess.from_payload({"date": "2026-02-14T09:30:00", "is_vat_special": "FALSE"})

        assert guess.expense_date == date(2026, 2, 14)
        assert guess.is_vat_invoice is False
