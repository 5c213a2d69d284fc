"""Redemption verifier: one admission per ticket, exact credential matching."""

import json
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from boxoffice.database import SessionLocal, build_engine
from boxoffice.domain.errors import AlreadyRedeemedError, TicketNotFoundError, TicketVoidedError
from boxoffice.models.base import Base, utcnow
from boxoffice.services import issuance, orders, redemption

from tests.factories import make_event


@pytest.fixture
def ticket(db, jazz_night, customer):
    event, ga = jazz_night
    order = orders.create_order(db, event.id, [(ga.id, 1)], customer).order
    return issuance.complete_purchase(db, order.id, "CAP-1", "paypal").tickets[0]


def test_redeem_string_payload(db, ticket):
    result = redemption.redeem(db, ticket.qr_code_data, staff_id="door-1", location="Front door")

    assert result.ticket_number == ticket.ticket_number
    assert result.customer_name == "Ada Lovelace"
    assert result.category_name == "GA"
    assert result.redeemed_at is not None

    stored = redemption.get_ticket(db, ticket.id)
    assert stored.status == "redeemed"
    assert stored.redeemed_by == "door-1"
    assert stored.redemption_location == "Front door"


def test_redeem_object_payload(db, ticket):
    result = redemption.redeem(db, json.loads(ticket.qr_code_data))
    assert result.ticket_number == ticket.ticket_number


def test_second_scan_reports_original_time(db, ticket):
    first = redemption.redeem(db, ticket.qr_code_data)

    with pytest.raises(AlreadyRedeemedError) as exc:
        redemption.redeem(db, ticket.qr_code_data)

    assert exc.value.ticket_number == ticket.ticket_number
    assert exc.value.redeemed_at == first.redeemed_at


def test_single_byte_mutation_is_unknown(db, ticket):
    data = ticket.qr_code_data
    index = data.index(ticket.ticket_number) + len(ticket.ticket_number) - 1
    replacement = "A" if data[index] != "A" else "B"
    mutated = data[:index] + replacement + data[index + 1:]

    with pytest.raises(TicketNotFoundError):
        redemption.redeem(db, mutated)
    assert redemption.get_ticket(db, ticket.id).status == "valid"


def test_reformatted_json_string_is_unknown(db, ticket):
    spaced = json.dumps(json.loads(ticket.qr_code_data), indent=2)
    with pytest.raises(TicketNotFoundError):
        redemption.redeem(db, spaced)


def test_void_ticket_cannot_be_redeemed(db, ticket):
    voided = redemption.void_ticket(db, ticket.id)
    assert voided.status == "void"

    with pytest.raises(TicketVoidedError):
        redemption.redeem(db, ticket.qr_code_data)
    with pytest.raises(TicketVoidedError):
        redemption.void_ticket(db, ticket.id)


def test_redeemed_ticket_cannot_be_voided(db, ticket):
    redemption.redeem(db, ticket.qr_code_data)
    with pytest.raises(AlreadyRedeemedError):
        redemption.void_ticket(db, ticket.id)


def test_scan_that_loses_the_update_reports_the_winner(db, ticket, monkeypatch):
    other = SessionLocal()
    winner = []

    def scanned_at_another_gate_first():
        monkeypatch.setattr(redemption, "utcnow", utcnow)
        winner.append(redemption.redeem(other, ticket.qr_code_data, staff_id="gate-2"))
        return utcnow()

    monkeypatch.setattr(redemption, "utcnow", scanned_at_another_gate_first)
    try:
        with pytest.raises(AlreadyRedeemedError) as exc:
            redemption.redeem(db, ticket.qr_code_data, staff_id="gate-1")
    finally:
        other.close()

    assert exc.value.redeemed_at == winner[0].redeemed_at
    assert redemption.get_ticket(db, ticket.id).redeemed_by == "gate-2"


def test_unknown_ticket_id(db):
    with pytest.raises(TicketNotFoundError):
        redemption.get_ticket(db, 999)


def test_concurrent_scans_admit_once(tmp_path, customer):
    """Two gates scan the same ticket at the same moment."""
    engine = build_engine(f"sqlite:///{tmp_path / 'gate.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with Session() as setup:
        event = make_event(setup, categories=[("GA", "20.00", 2)])
        order = orders.create_order(setup, event.id, [(event.categories[0].id, 1)], customer).order
        credential = issuance.complete_purchase(setup, order.id, "CAP-1", "paypal").tickets[0].qr_code_data

    barrier = threading.Barrier(2)
    admitted, rejected = [], []
    lock = threading.Lock()

    def scan(gate):
        with Session() as session:
            barrier.wait()
            try:
                result = redemption.redeem(session, credential, staff_id=gate)
            except AlreadyRedeemedError as exc:
                with lock:
                    rejected.append(exc)
            else:
                with lock:
                    admitted.append(result)

    threads = [threading.Thread(target=scan, args=(f"gate-{n}",)) for n in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    engine.dispose()

    assert len(admitted) == 1
    assert len(rejected) == 1
    assert rejected[0].redeemed_at == admitted[0].redeemed_at
    assert rejected[0].ticket_number == admitted[0].ticket_number
