"""Notification outbox: enqueue dedupe, delivery attempts and email rendering."""

import pytest

from boxoffice.core.config import settings
from boxoffice.core.email import build_ticket_message, render_ticket_email, send_ticket_email
from boxoffice.models.outbox import NotificationOutbox
from boxoffice.services import issuance, notifications, orders


@pytest.fixture
def issued_order(db, jazz_night, customer):
    event, ga = jazz_night
    order = orders.create_order(db, event.id, [(ga.id, 2)], customer).order
    issuance.complete_purchase(db, order.id, "CAP-1", "paypal")
    return order


def _message(db):
    db.expire_all()
    return db.query(NotificationOutbox).one()


def test_enqueue_ignores_duplicate_key(db):
    notifications.enqueue(db, "ticket_delivery", 1, {"a": 1}, dedupe_key="k-1")
    db.commit()
    notifications.enqueue(db, "ticket_delivery", 1, {"a": 2}, dedupe_key="k-1")
    db.commit()

    assert db.query(NotificationOutbox).count() == 1
    assert _message(db).payload == {"a": 1}


def test_successful_delivery(db, issued_order):
    sent = []

    def sender(kind, payload):
        sent.append((kind, payload["orderNumber"]))
        return True

    report = notifications.deliver_pending(db, sender=sender)

    assert report.sent == 1
    assert sent == [("ticket_delivery", issued_order.order_number)]
    message = _message(db)
    assert message.status == "sent"
    assert message.attempts == 1
    assert message.sent_at is not None

    assert notifications.deliver_pending(db, sender=sender).sent == 0


def test_failures_retry_until_exhausted(db, issued_order, monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_MAX_ATTEMPTS", 2)

    def sender(kind, payload):
        raise ConnectionError("smtp down")

    first = notifications.deliver_pending(db, sender=sender)
    assert first.failed == 1
    message = _message(db)
    assert message.status == "pending"
    assert message.last_error == "smtp down"

    notifications.deliver_pending(db, sender=sender)
    assert _message(db).status == "failed"
    assert notifications.deliver_pending(db, sender=sender).failed == 0


def test_sender_returning_false(db, issued_order):
    report = notifications.deliver_pending(db, sender=lambda kind, payload: False)
    assert report.failed == 1
    assert _message(db).last_error == "delivery failed"


def test_render_ticket_email_lists_every_ticket(db, issued_order):
    payload = _message(db).payload
    subject, body = render_ticket_email(payload)

    assert subject == "Your Tickets for Jazz Night"
    assert issued_order.order_number in body
    for ticket in payload["tickets"]:
        assert ticket["ticketNumber"] in body
        assert ticket["credential"] in body


def test_ticket_message_attaches_one_qr_per_ticket(db, issued_order):
    payload = _message(db).payload
    msg = build_ticket_message("ada@example.com", payload)

    images = [part for part in msg.walk() if part.get_content_type() == "image/png"]
    assert [part.get_filename() for part in images] == [f"{t['ticketNumber']}.png" for t in payload["tickets"]]
    assert len(images) == 2
    assert all(part.get_payload(decode=True).startswith(b"\x89PNG") for part in images)


def test_send_without_smtp_host(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_HOST", None)
    assert send_ticket_email("ada@example.com", {"orderNumber": "ORD-1"}) is False


def test_send_uses_smtp(monkeypatch):
    sent = {}

    class FakeSMTP:
        def __init__(self, host, port):
            sent["server"] = (host, port)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            sent["tls"] = True

        def login(self, user, password):
            sent["login"] = user

        def sendmail(self, from_addr, to_addr, message):
            sent["to"] = to_addr

    monkeypatch.setattr(settings, "EMAIL_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "EMAIL_USER", "mailer")
    monkeypatch.setattr("boxoffice.core.email.smtplib.SMTP", FakeSMTP)
    payload = {
        "orderNumber": "ORD-1",
        "customerName": "Ada",
        "eventTitle": "Jazz Night",
        "eventStart": "2026-10-24T20:00:00+00:00",
        "eventLocation": None,
        "tickets": [],
    }

    assert send_ticket_email("ada@example.com", payload) is True
    assert sent == {"server": ("smtp.example.com", 587), "tls": True, "login": "mailer", "to": "ada@example.com"}
