"""Tests for fingerprint builders.

GIVEN: raw records as ingestion sources deliver them
WHEN: building comparison keys
THEN: cosmetic variants collapse to one key and unusable records are rejected
"""

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fintrack.models import EntityKind
from fintrack.services.errors import MissingRequiredField
from fintrack.services.fingerprint import (
    accounts_match,
    fingerprint,
    normalize_account_number,
    normalize_code,
    normalize_name,
    parse_date,
    parse_timestamp,
    to_money,
)


class TestNormalizers:
    def test_account_number_mask_characters_removed(self):
        assert normalize_account_number("XXXX-XXXX-1234") == "1234"
        assert normalize_account_number("**** 5678") == "5678"
        assert normalize_account_number("ab12cd") == "AB12CD"
        assert normalize_account_number("xx-4321") == "4321"

    def test_x_kept_in_alphanumeric_account(self):
        assert normalize_account_number("HDFCX001") == "HDFCX001"
        assert normalize_account_number("hdfcx001") == "HDFCX001"
        assert normalize_account_number("XXXX-HDFCX001") == "XXXXHDFCX001"

    def test_fully_masked_account_gets_stable_pseudo_identifier(self):
        """GIVEN: an account number that is nothing but mask characters
        WHEN: normalizing it twice with the same bank
        THEN: the same AUTO_ identifier comes back, and another bank differs"""
        first = normalize_account_number("XXXX-XXXX", "HDFC Bank")
        second = normalize_account_number("XXXX-XXXX", "hdfc bank")
        other_bank = normalize_account_number("XXXX-XXXX", "ICICI Bank")

        assert first.startswith("AUTO_")
        assert len(first) == len("AUTO_") + 10
        assert first == second
        assert first != other_bank

    def test_accounts_match_suffix(self):
        assert accounts_match("1234", "1234")
        assert accounts_match("1234", "9876541234")
        assert accounts_match("9876541234", "1234")
        assert not accounts_match("123", "9876540123")
        assert not accounts_match("1234", "9876545678")
        assert not accounts_match("AUTO_ABC", "1234")

    def test_normalize_name_and_code(self):
        assert normalize_name("  Home   Loan ") == "home loan"
        assert normalize_name(None) == ""
        assert normalize_code(" reliance ") == "RELIANCE"
        assert normalize_code("ab 12") == "AB12"

    def test_to_money_rounds_half_up(self):
        assert to_money("1,234.565") == Decimal("1234.57")
        assert to_money(0.1 + 0.2) == Decimal("0.30")
        assert to_money(Decimal("10")) == Decimal("10.00")
        assert to_money("2.5", precision=0) == Decimal("3")

    def test_parse_timestamp_defaults_to_utc(self):
        naive = parse_timestamp("2024-03-01T10:00:00")
        aware = parse_timestamp("2024-03-01T15:30:00+05:30")

        assert naive == datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
        assert aware == datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
        assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=UTC)
        ist = timezone(timedelta(hours=5, minutes=30))
        assert parse_timestamp(datetime(2024, 3, 1, 15, 30, tzinfo=ist)).tzinfo == UTC

    def test_parse_date_accepts_datetime_strings(self):
        assert parse_date("2024-03-01") == date(2024, 3, 1)
        assert parse_date("2024-03-01T10:00:00") == date(2024, 3, 1)
        assert parse_date(datetime(2024, 3, 1, 23, 59)) == date(2024, 3, 1)


class TestFingerprint:
    def test_transaction_masked_and_signed_variants_share_key(self):
        """GIVEN: the same debit seen by SMS (masked, negative) and statement
        WHEN: fingerprinting both
        THEN: amount and time normalize identically"""
        sms = {
            "account_number": "XXXX1234",
            "amount": "-500.00",
            "txn_time": "2024-03-01T10:00:00",
        }
        statement = {
            "account_number": "1234",
            "amount": 500,
            "transaction_date": "2024-03-01T10:00:00+00:00",
        }

        assert fingerprint(EntityKind.TRANSACTION, sms) == fingerprint(EntityKind.TRANSACTION, statement)

    def test_transaction_key_fields(self):
        key = fingerprint(
            EntityKind.TRANSACTION,
            {"account_number": "1234", "amount": "99.999", "date": "2024-03-01"},
        )

        assert key.kind is EntityKind.TRANSACTION
        assert key["amount"] == Decimal("100.00")
        assert key["txn_time"] == datetime(2024, 3, 1, tzinfo=UTC)
        assert key["reference_number"] == ""
        assert set(key.as_dict()) == {"account_number", "amount", "txn_time", "reference_number"}
        with pytest.raises(KeyError):
            key["merchant"]

    def test_stock_symbol_case_insensitive(self):
        assert fingerprint(EntityKind.STOCK, {"symbol": "reliance"}) == fingerprint(
            EntityKind.STOCK, {"symbol": "RELIANCE "}
        )

    def test_mutual_fund_key(self):
        key = fingerprint(
            EntityKind.MUTUAL_FUND,
            {"fund_name": "Axis  Bluechip Fund", "folio_number": "12 345"},
        )
        assert key.as_dict() == {"fund_name": "axis bluechip fund", "folio_number": "12345"}

    def test_fixed_deposit_and_emi_keys(self):
        fd = fingerprint(
            EntityKind.FIXED_DEPOSIT,
            {"bank_name": "SBI", "principal_amount": "100000", "maturity_date": "2025-01-01"},
        )
        emi = fingerprint(
            EntityKind.EMI,
            {"loan_name": "Home Loan", "emi_amount": 25000, "start_date": date(2023, 5, 5)},
        )

        assert fd["principal_amount"] == Decimal("100000.00")
        assert fd["maturity_date"] == date(2025, 1, 1)
        assert emi["loan_name"] == "home loan"
        assert emi["start_date"] == date(2023, 5, 5)

    def test_bank_account_and_long_term_fund_keys(self):
        account = fingerprint(EntityKind.BANK_ACCOUNT, {"account_number": "XX-9876"})
        ppf = fingerprint(EntityKind.LONG_TERM_FUND, {"fund_type": "PPF", "account_number": "PPF 001"})

        assert account["account_number"] == "9876"
        assert ppf.as_dict() == {"fund_type": "ppf", "account_number": "PPF001"}

    def test_fingerprint_is_pure(self):
        record = {"loan_name": "Car Loan", "emi_amount": "9000", "start_date": "2024-01-10"}
        snapshot = dict(record)

        first = fingerprint(EntityKind.EMI, record)
        second = fingerprint(EntityKind.EMI, record)

        assert first == second
        assert record == snapshot

    @pytest.mark.parametrize(
        "kind,record,field",
        [
            (EntityKind.TRANSACTION, {"amount": 10, "txn_time": "2024-01-01"}, "account_number"),
            (EntityKind.TRANSACTION, {"account_number": "1234", "txn_time": "2024-01-01"}, "amount"),
            (EntityKind.TRANSACTION, {"account_number": "1234", "amount": 10}, "txn_time"),
            (EntityKind.STOCK, {"symbol": "   "}, "symbol"),
            (EntityKind.MUTUAL_FUND, {"fund_name": "Axis"}, "folio_number"),
            (EntityKind.EMI, {"loan_name": "Home", "start_date": "2024-01-01"}, "emi_amount"),
            (EntityKind.LONG_TERM_FUND, {"account_number": "1"}, "fund_type"),
        ],
    )
    def test_missing_required_field(self, kind, record, field):
        with pytest.raises(MissingRequiredField) as exc_info:
            fingerprint(kind, record)

        assert exc_info.value.field == field
        assert exc_info.value.kind == kind.value
        assert "missing required field" in str(exc_info.value)

    def test_unparseable_value_is_unusable(self):
        with pytest.raises(MissingRequiredField) as exc_info:
            fingerprint(
                EntityKind.TRANSACTION,
                {"account_number": "1234", "amount": "ten rupees", "txn_time": "2024-01-01"},
            )

        assert exc_info.value.field == "amount"
        assert "unusable field" in str(exc_info.value)

    def test_unparseable_date_is_unusable(self):
        with pytest.raises(MissingRequiredField) as exc_info:
            fingerprint(
                EntityKind.FIXED_DEPOSIT,
                {"bank_name": "SBI", "principal_amount": 1000, "maturity_date": "next year"},
            )

        assert exc_info.value.field == "maturity_date"
