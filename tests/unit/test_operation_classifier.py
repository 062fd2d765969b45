"""Unit tests for OperationClassifier."""

from decimal import Decimal

import pytest

from conftest import (
    ISSUER,
    OTHER,
    THIRD,
    WATCHED,
    build_create_account,
    build_other,
    build_payment,
    build_transaction,
)
from ledger_sync.domain.exceptions import ParseError
from ledger_sync.domain.services.operation_classifier import (
    OperationClassifier,
    UnrelatedPolicy,
    classify,
    parse_amount,
)
from ledger_sync.models.payment import PaymentDirection, PaymentStatus


class TestParseAmount:
    """Tests for ledger decimal parsing."""

    def test_parses_seven_decimal_places_exactly(self):
        """Amounts keep full precision as Decimal."""
        assert parse_amount("0.0000001") == Decimal("0.0000001")
        assert parse_amount("922337203685.4775807") == Decimal("922337203685.4775807")

    @pytest.mark.parametrize("raw", [None, "", "abc", "1,5"])
    def test_rejects_malformed(self, raw):
        """Missing or malformed amounts raise ParseError."""
        with pytest.raises(ParseError):
            parse_amount(raw)

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf"])
    def test_rejects_non_finite(self, raw):
        """NaN and infinities are not amounts."""
        with pytest.raises(ParseError):
            parse_amount(raw)


class TestTransferDirection:
    """Direction rules for payment and path payments."""

    def test_payment_to_watched_is_incoming(self):
        """A payment received from someone else is incoming."""
        tx = build_transaction(1)
        record = classify(tx, build_payment(tx, from_account=OTHER, to_account=WATCHED), WATCHED)

        assert record.direction is PaymentDirection.INCOMING
        assert record.amount == Decimal("10")
        assert record.token == "XLM"
        assert record.from_account == OTHER
        assert record.to_account == WATCHED

    def test_payment_from_watched_is_outgoing(self):
        """A payment sent by the watched account is outgoing."""
        tx = build_transaction(1, source=WATCHED)
        record = classify(tx, build_payment(tx, from_account=WATCHED, to_account=OTHER), WATCHED)

        assert record.direction is PaymentDirection.OUTGOING

    def test_operation_source_counts_as_sender(self):
        """Watched account as operation source makes it outgoing even if `from` differs."""
        tx = build_transaction(1)
        op = build_payment(tx, from_account=OTHER, to_account=THIRD, source_account=WATCHED)

        assert classify(tx, op, WATCHED).direction is PaymentDirection.OUTGOING

    def test_self_payment_is_outgoing(self):
        """Sending to yourself is not an incoming payment."""
        tx = build_transaction(1, source=WATCHED)
        op = build_payment(tx, from_account=WATCHED, to_account=WATCHED)

        assert classify(tx, op, WATCHED).direction is PaymentDirection.OUTGOING

    def test_unrelated_defaults_to_outgoing(self):
        """Operations touching neither side fall back to outgoing."""
        tx = build_transaction(1)
        op = build_payment(tx, from_account=OTHER, to_account=THIRD)

        assert classify(tx, op, WATCHED).direction is PaymentDirection.OUTGOING

    def test_unrelated_excluded_by_policy(self):
        """With the exclude policy, unrelated operations produce no record."""
        classifier = OperationClassifier(UnrelatedPolicy.EXCLUDE)
        tx = build_transaction(1)
        op = build_payment(tx, from_account=OTHER, to_account=THIRD)

        assert classifier.classify(tx, op, WATCHED) is None

    def test_exclude_policy_keeps_related(self):
        """The exclude policy never drops payments that touch the account."""
        classifier = OperationClassifier(UnrelatedPolicy.EXCLUDE)
        tx = build_transaction(1)
        op = build_payment(tx, from_account=OTHER, to_account=WATCHED)

        assert classifier.classify(tx, op, WATCHED).direction is PaymentDirection.INCOMING

    @pytest.mark.parametrize("kind", ["path_payment_strict_receive", "path_payment_strict_send"])
    def test_path_payments_classified_like_payments(self, kind):
        """Path payments use the destination amount and asset."""
        tx = build_transaction(1)
        op = build_payment(
            tx,
            from_account=OTHER,
            to_account=WATCHED,
            amount="42.5000000",
            asset_code="USDC",
            asset_issuer=ISSUER,
            kind=kind,
        )
        record = classify(tx, op, WATCHED)

        assert record.operation_type == kind
        assert record.token == "USDC"
        assert record.amount == Decimal("42.5")
        assert record.direction is PaymentDirection.INCOMING


class TestCreateAccount:
    """create_account classification."""

    def test_funding_watched_account_is_incoming(self):
        """The starting balance of the watched account is an incoming XLM payment."""
        tx = build_transaction(1)
        record = classify(tx, build_create_account(tx, funder=OTHER, account=WATCHED), WATCHED)

        assert record.direction is PaymentDirection.INCOMING
        assert record.amount == Decimal("10000")
        assert record.token == "XLM"
        assert record.from_account == OTHER
        assert record.to_account == WATCHED
        assert record.operation_type == "create_account"

    def test_creating_another_account_is_outgoing(self):
        """Funding someone else's account is outgoing."""
        tx = build_transaction(1, source=WATCHED)
        record = classify(tx, build_create_account(tx, funder=WATCHED, account=OTHER), WATCHED)

        assert record.direction is PaymentDirection.OUTGOING

    def test_funder_falls_back_to_source(self):
        """Without a funder field, the operation source is the sender."""
        tx = build_transaction(1)
        op = build_create_account(tx, funder=None, account=WATCHED).model_copy(
            update={"source_account": THIRD}
        )

        assert classify(tx, op, WATCHED).from_account == THIRD

    def test_missing_starting_balance_raises(self):
        """A create_account without a balance is malformed."""
        tx = build_transaction(1)
        with pytest.raises(ParseError):
            classify(tx, build_create_account(tx, starting_balance=None), WATCHED)


class TestRecordFields:
    """Fields copied from the parent transaction."""

    def test_non_payment_operations_yield_nothing(self):
        """Trustlines, offers and friends are not payments."""
        tx = build_transaction(1)

        assert classify(tx, build_other(tx, kind="change_trust"), WATCHED) is None
        assert classify(tx, build_other(tx, kind="manage_sell_offer"), WATCHED) is None

    def test_status_follows_transaction_success(self):
        """Status is COMPLETED or FAILED from the transaction flag only."""
        ok = build_transaction(1)
        failed = build_transaction(2, successful=False)

        assert classify(ok, build_payment(ok), WATCHED).status is PaymentStatus.COMPLETED
        assert classify(failed, build_payment(failed), WATCHED).status is PaymentStatus.FAILED

    def test_record_carries_transaction_metadata(self):
        """Date, hash, fee and memo come from the transaction; id from the operation."""
        tx = build_transaction(7, memo="invoice 17")
        op = build_payment(tx, index=2)
        record = classify(tx, op, WATCHED)

        assert record.id == op.id
        assert record.date == tx.created_at
        assert record.hash == tx.hash
        assert record.fee == "100"
        assert record.memo == "invoice 17"

    def test_classification_is_deterministic(self):
        """Re-classifying the same inputs gives an equal record."""
        tx = build_transaction(3)
        op = build_payment(tx)

        assert classify(tx, op, WATCHED) == classify(tx, op, WATCHED)

    def test_invalid_amount_raises(self):
        """A malformed amount raises rather than producing a zero."""
        tx = build_transaction(1)
        with pytest.raises(ParseError):
            classify(tx, build_payment(tx, amount="12..5"), WATCHED)

    def test_to_dict_is_json_safe(self):
        """to_dict renders enums, dates and decimals as strings."""
        tx = build_transaction(1)
        data = classify(tx, build_payment(tx, amount="1.5000000"), WATCHED).to_dict()

        assert data["amount"] == "1.5000000"
        assert data["direction"] == "incoming"
        assert data["status"] == "completed"
        assert data["date"] == tx.created_at.isoformat()


class TestClassifyTransaction:
    """Batch classification over a transaction's operations."""

    def test_keeps_operation_order_and_skips_non_payments(self):
        """Records follow operation order; non-payments are dropped."""
        tx = build_transaction(1)
        ops = [
            build_payment(tx, index=1, amount="1"),
            build_other(tx, index=2),
            build_payment(tx, index=3, amount="3"),
        ]
        records = OperationClassifier().classify_transaction(tx.with_operations(ops), WATCHED)

        assert [r.id for r in records] == [ops[0].id, ops[2].id]

    def test_malformed_operation_does_not_abort_batch(self):
        """One bad amount is skipped; the rest of the transaction survives."""
        tx = build_transaction(1)
        ops = [
            build_payment(tx, index=1, amount="bogus"),
            build_payment(tx, index=2, amount="2"),
        ]
        records = OperationClassifier().classify_transaction(tx.with_operations(ops), WATCHED)

        assert len(records) == 1
        assert records[0].amount == Decimal("2")
