"""Tests for fixed_costs.importer -- scraper JSON into the transactions table."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from fixed_costs.importer import import_records, load_records, records_from_json
from fixed_costs.models import INSTALLMENT
from fixed_costs.pipeline import detect_for_account
from fixed_costs.store import StoreError


def _record(identifier: int, **overrides) -> dict:
    record = {
        "identifier": identifier,
        "date": "2024-01-14T22:00:00.000Z",
        "processedDate": "2024-02-09T22:00:00.000Z",
        "originalAmount": -1500,
        "originalCurrency": "ILS",
        "chargedAmount": -250,
        "description": "IKEA",
        "type": "installments",
        "installments": {"number": 1, "total": 6},
    }
    record.update(overrides)
    return record


class TestRecordsFromJson:
    def test_bare_list(self):
        assert records_from_json([_record(1), "junk"]) == [_record(1)]

    def test_single_account(self):
        assert records_from_json({"accountNumber": "1234", "txns": [_record(1)]}) == [_record(1)]

    def test_full_scrape_result(self):
        """Transactions of every scraped account are flattened."""
        data = {
            "success": True,
            "accounts": [{"txns": [_record(1)]}, {"txns": [_record(2)]}, {"txns": []}],
        }
        assert [r["identifier"] for r in records_from_json(data)] == [1, 2]

    def test_unknown_shape(self):
        with pytest.raises(ValueError, match="txns"):
            records_from_json({"balance": 12})

    def test_load_from_file(self, tmp_path: Path):
        path = tmp_path / "scrape.json"
        path.write_text(json.dumps({"txns": [_record(7)]}, ensure_ascii=False), encoding="utf-8")
        assert load_records(path)[0]["identifier"] == 7


class TestImportRecords:
    def test_inserts_mapped_rows(self, store):
        """Each record is stored in the transactions row shape."""
        result = import_records(store, "acct-a", [_record(1), _record(2, description="חברת חשמל")])

        assert (result.inserted, result.skipped) == (2, 0)
        row = store.imported_rows[0]
        assert row["account_id"] == "acct-a"
        assert row["identifier"] == "1"
        assert row["date"] == "2024-01-14"
        assert row["charged_amount"] == "-250"
        assert row["installment_total"] == 6

    def test_duplicates_are_skipped(self, store):
        """Re-importing the same scrape inserts nothing new."""
        import_records(store, "acct-a", [_record(1)])
        result = import_records(store, "acct-a", [_record(1)])

        assert (result.inserted, result.skipped) == (0, 1)
        assert len(store.imported_rows) == 1

    def test_unmappable_records_reported(self, store):
        """Records with a bad amount or no date become warnings."""
        records = [_record(1, chargedAmount="n/a"), _record(2, date=None), _record(3)]
        result = import_records(store, "acct-a", records)

        assert result.inserted == 1
        assert len(result.warnings) == 2
        assert "1" in result.warnings[0]
        assert "missing date" in result.warnings[1]

    def test_store_failure_propagates(self, store):
        store.failing_inserts.add("acct-a")
        with pytest.raises(StoreError):
            import_records(store, "acct-a", [_record(1)])

    def test_imported_transactions_feed_detection(self, ctx, store):
        """Imported scraper data is visible to the detectors."""
        import_records(store, "acct-a", [_record(1)])
        detect_for_account(ctx, "acct-a")

        [item] = store.items_for("acct-a", INSTALLMENT)
        assert item.description == "IKEA (1/6)"
        assert item.amount_avg == Decimal("-250")
        assert store.transactions[0].date == date(2024, 1, 14)
