"""Unit tests for domain primitives: category refs, selection lines, credentials, references."""

import json
import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from boxoffice.core.identifiers import epoch_millis, generate_reference, generate_transaction_id
from boxoffice.domain import credentials
from boxoffice.domain.errors import ErrorCode, InsufficientInventoryError, PersistenceError
from boxoffice.domain.value_objects import (
    ExplicitCategory,
    SelectionLine,
    SyntheticCategory,
    parse_category_ref,
    quantize_money,
)


class TestCategoryRef:
    def test_base_key_is_synthetic(self):
        assert parse_category_ref("base", 7) == SyntheticCategory(event_id=7)
        assert parse_category_ref(" BASE ", 7) == SyntheticCategory(event_id=7)

    def test_integer_and_numeric_string_are_explicit(self):
        assert parse_category_ref(12, 7) == ExplicitCategory(id=12)
        assert parse_category_ref("12", 7) == ExplicitCategory(id=12)

    @pytest.mark.parametrize("raw", ["vip", None, True, "1.5"])
    def test_garbage_is_rejected(self, raw):
        with pytest.raises(ValueError):
            parse_category_ref(raw, 7)


class TestSelectionLine:
    def test_subtotal_uses_snapshot_price(self):
        line = SelectionLine(ExplicitCategory(3), 3, Decimal("19.99"), "GA")
        assert line.subtotal == Decimal("59.97")

    def test_json_keeps_price_exact(self):
        line = SelectionLine(SyntheticCategory(5), 2, Decimal("12.50"), "General Admission")
        data = line.to_json()
        assert data == {"category": "base", "quantity": 2, "unitPrice": "12.50", "name": "General Admission"}
        assert SelectionLine.from_json(json.loads(json.dumps(data)), 5) == line

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValueError):
            SelectionLine(ExplicitCategory(1), 0, Decimal("1.00"), "GA")

    def test_money_rounds_half_up(self):
        assert quantize_money("2.345") == Decimal("2.35")
        assert quantize_money(20) == Decimal("20.00")


class TestCredentials:
    def _payload(self):
        return credentials.build_payload("a1b2", 10, 3, "TKT-20261017-ABC123", 1760000000000)

    def test_serialization_is_compact_and_ordered(self):
        serialized = credentials.serialize_payload(self._payload())
        assert serialized == (
            '{"ticketId":"a1b2","orderId":10,"eventId":3,'
            '"ticketNumber":"TKT-20261017-ABC123","issuedAt":1760000000000}'
        )

    def test_key_order_of_input_does_not_matter(self):
        payload = self._payload()
        shuffled = dict(reversed(list(payload.items())))
        assert credentials.serialize_payload(shuffled) == credentials.serialize_payload(payload)

    def test_presented_object_and_string_agree(self):
        payload = self._payload()
        serialized = credentials.serialize_payload(payload)
        assert credentials.digest_presented(payload) == credentials.digest(serialized)
        assert credentials.digest_presented(serialized) == credentials.digest(serialized)

    def test_single_byte_change_changes_digest(self):
        serialized = credentials.serialize_payload(self._payload())
        mutated = serialized[:-2] + ("1" if serialized[-2] != "1" else "2") + serialized[-1]
        assert credentials.digest(mutated) != credentials.digest(serialized)

    def test_digest_is_sha256_hex(self):
        assert re.fullmatch(r"[0-9a-f]{64}", credentials.digest("x"))


class TestReferences:
    def test_order_reference_format(self):
        now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        assert re.fullmatch(r"ORD-20261017-[0-9A-Z]{6}", generate_reference("ORD", now=now))

    def test_transaction_id_format(self):
        now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        txn = generate_transaction_id(now)
        assert re.fullmatch(rf"TXN-{epoch_millis(now)}-[0-9A-Z]{{7}}", txn)

    def test_epoch_millis_treats_naive_as_utc(self):
        aware = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert epoch_millis(aware.replace(tzinfo=None)) == epoch_millis(aware)


class TestErrors:
    def test_inventory_error_message(self):
        err = InsufficientInventoryError("GA", 1)
        assert err.code is ErrorCode.INSUFFICIENT_INVENTORY
        assert err.status_code == 409
        assert err.message == "Only 1 GA tickets available"

    def test_persistence_error_hides_details_from_message(self):
        err = PersistenceError("ticket order", "create")
        assert "storage error" in err.message
        assert str(err) == "PERSISTENCE_ERROR: create ticket order failed"
