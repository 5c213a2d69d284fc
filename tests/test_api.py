"""HTTP surface: envelopes, status codes, role guards and the end-to-end flow."""

import base64
import json
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from boxoffice.core.config import settings
from boxoffice.core.payment_gateways import StripeGateway
from boxoffice.core.security import create_access_token
from boxoffice.database import get_db
from boxoffice.main import app
from boxoffice.models.outbox import NotificationOutbox
from boxoffice.models.ticket import PurchasedTicket

from tests.factories import make_event


def _purchase(client, event_id, category_id, quantity=1, **customer):
    body = {
        "eventId": event_id,
        "lineItems": [{"categoryId": category_id, "quantity": quantity}],
        "customer": {"name": "Ada Lovelace", "email": "ada@example.com", **customer},
    }
    return client.post("/tickets/purchase", json=body)


def _capture(client, order_id, authorization_id):
    return client.post("/payments/capture", json={
        "authorizationId": authorization_id,
        "orderId": order_id,
        "paymentMethod": "paypal",
    })


def test_purchase_opens_payment(client, jazz_night, gateway):
    event, ga = jazz_night
    response = _purchase(client, event.id, ga.id, 2)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["statusCode"] == 200
    data = body["data"]
    assert data["orderNumber"].startswith("ORD-")
    assert data["totalAmount"] == 40.0
    assert data["currency"] == "USD"
    assert data["paymentRequired"] is True
    assert data["paymentHandle"].startswith("https://pay.example/AUTH-")
    assert len(gateway.authorizations) == 1


def test_purchase_errors_use_envelope(client, jazz_night):
    event, ga = jazz_night

    response = _purchase(client, event.id, ga.id, 3)
    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["message"] == "Only 2 GA tickets available"
    assert response.json()["data"] == {"code": "INSUFFICIENT_INVENTORY"}

    response = _purchase(client, 999, ga.id)
    assert response.status_code == 404
    assert response.json()["data"]["code"] == "EVENT_NOT_FOUND"


def test_purchase_missing_customer_fields(client, jazz_night):
    event, ga = jazz_night
    response = _purchase(client, event.id, ga.id, name="", email="")
    assert response.status_code == 400
    assert response.json()["data"]["code"] == "MISSING_CUSTOMER_FIELDS"


def test_purchase_validation_error(client, jazz_night):
    event, ga = jazz_night
    response = _purchase(client, event.id, ga.id, 0)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"
    assert response.json()["data"]["errors"]


def test_free_purchase_issues_immediately(client, db):
    event = make_event(db, title="Open Mic", categories=[("Door", "0.00", None)])
    response = _purchase(client, event.id, event.categories[0].id, 2)

    data = response.json()["data"]
    assert data["paymentRequired"] is False
    assert data["paymentHandle"] is None
    assert len(data["tickets"]) == 2
    assert db.query(NotificationOutbox).count() == 1


def test_purchase_capture_verify_flow(client, jazz_night, gateway, staff_headers):
    event, ga = jazz_night
    order = _purchase(client, event.id, ga.id, 2).json()["data"]
    authorization_id = next(iter(gateway.authorizations))

    response = _capture(client, order["orderId"], authorization_id)
    assert response.status_code == 200
    captured = response.json()["data"]
    assert captured["status"] == "completed"
    assert captured["amount"] == 40.0
    assert len(captured["tickets"]) == 2
    qr_image = captured["tickets"][0]["qrCodeImage"]
    assert qr_image.startswith("data:image/png;base64,")
    assert base64.b64decode(qr_image.split(",", 1)[1]).startswith(b"\x89PNG")

    again = _capture(client, order["orderId"], authorization_id).json()
    assert again["message"] == "Payment already captured"
    assert again["data"]["transactionId"] == captured["transactionId"]
    assert gateway.captures == [authorization_id]

    credential = captured["tickets"][0]["credentialPayload"]
    verified = client.post("/tickets/verify", json={"credentialPayload": credential, "location": "Door A"}, headers=staff_headers)
    assert verified.status_code == 200
    assert verified.json()["data"]["success"] is True
    assert verified.json()["data"]["categoryName"] == "GA"

    repeat = client.post("/tickets/verify", json={"credentialPayload": json.loads(credential)}, headers=staff_headers)
    assert repeat.status_code == 409
    assert repeat.json()["data"]["errorKind"] == "ALREADY_REDEEMED"
    assert repeat.json()["data"]["redeemedAt"] == verified.json()["data"]["redeemedAt"]

    unknown = client.post("/tickets/verify", json={"credentialPayload": credential + " "}, headers=staff_headers)
    assert unknown.status_code == 404
    assert unknown.json()["data"]["errorKind"] == "TICKET_NOT_FOUND"

    detail = client.get(f"/orders/{order['orderId']}").json()["data"]
    assert detail["paymentStatus"] == "paid"
    assert len(detail["tickets"]) == 2


def test_verify_requires_staff(client):
    response = client.post("/tickets/verify", json={"credentialPayload": "x"})
    assert response.status_code in (401, 403)

    token = create_access_token({"sub": "guest@example.com", "role": "customer"})
    response = client.post("/tickets/verify", json={"credentialPayload": "x"}, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_complete_purchase_endpoint(client, jazz_night, staff_headers):
    event, ga = jazz_night
    order = _purchase(client, event.id, ga.id, 1).json()["data"]
    body = {"orderId": order["orderId"], "paymentTransactionId": "EXT-1", "paymentMethod": "cash"}

    first = client.post("/tickets/complete-purchase", json=body, headers=staff_headers)
    second = client.post("/tickets/complete-purchase", json=body, headers=staff_headers)

    assert first.status_code == 200
    data = first.json()["data"]
    assert data["redirectTarget"] == f"/events/jazz-night/tickets/{order['orderId']}"
    assert data["order"]["paymentMethod"] == "cash"
    assert [t["id"] for t in second.json()["data"]["tickets"]] == [t["id"] for t in data["tickets"]]


def test_void_is_admin_only(client, jazz_night, staff_headers, admin_headers, db):
    event, ga = jazz_night
    order = _purchase(client, event.id, ga.id, 1).json()["data"]
    client.post(
        "/tickets/complete-purchase",
        json={"orderId": order["orderId"], "paymentTransactionId": "EXT-1", "paymentMethod": "cash"},
        headers=staff_headers,
    )
    ticket_id = db.query(PurchasedTicket).one().id

    assert client.post(f"/tickets/{ticket_id}/void", headers=staff_headers).status_code == 403
    response = client.post(f"/tickets/{ticket_id}/void", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "void"

    ticket = client.get(f"/tickets/{ticket_id}", headers=staff_headers).json()["data"]
    assert ticket["status"] == "void"


def test_direct_payment_endpoint(client, jazz_night, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_SIMULATED_PAYMENTS", True)
    event, ga = jazz_night
    order = _purchase(client, event.id, ga.id, 1).json()["data"]

    response = client.post("/payments/process", json={"orderId": order["orderId"]})
    assert response.status_code == 200
    assert response.json()["data"]["transactionId"].startswith("TXN-")


def test_authorize_endpoint(client, jazz_night, gateway):
    event, ga = jazz_night
    order = _purchase(client, event.id, ga.id, 1).json()["data"]

    response = client.post("/payments/authorize", json={"orderId": order["orderId"]})
    assert response.status_code == 200
    assert response.json()["data"]["authorizationId"] in gateway.authorizations


def test_capture_rejects_authorization_of_another_order(client, jazz_night, gateway):
    event, ga = jazz_night
    first = _purchase(client, event.id, ga.id, 1).json()["data"]
    second = _purchase(client, event.id, ga.id, 1).json()["data"]
    authorization_id = next(iter(gateway.authorizations))
    assert _capture(client, first["orderId"], authorization_id).status_code == 200

    response = _capture(client, second["orderId"], authorization_id)

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "INVALID_PAYMENT"
    assert client.get(f"/orders/{second['orderId']}").json()["data"]["paymentStatus"] == "unpaid"


def test_availability(client, db):
    event = make_event(db, title="Karaoke", base_price=Decimal("5.00"), categories=[("VIP", "25.00", 4)])
    response = client.get(f"/events/{event.id}/availability")

    categories = response.json()["data"]["categories"]
    assert [c["categoryKey"] for c in categories] == [str(event.categories[0].id), "base"]
    assert categories[0]["available"] == 4
    assert categories[1]["available"] is None


class TestStripeWebhook:
    @pytest.fixture
    def stripe_events(self, monkeypatch, gateway):
        monkeypatch.setattr(StripeGateway, "parse_webhook", lambda self, payload, signature: json.loads(payload))
        monkeypatch.setattr(StripeGateway, "capture_authorization", lambda self, authorization_id: gateway.capture_authorization(authorization_id))

    def _post(self, client, event_type, session):
        payload = {"id": "evt_1", "type": event_type, "data": {"object": session}}
        return client.post("/payments/webhook", content=json.dumps(payload), headers={"Stripe-Signature": "t=1"})

    def test_completed_session_captures_once(self, client, jazz_night, gateway, stripe_events, db):
        event, ga = jazz_night
        order = _purchase(client, event.id, ga.id, 1).json()["data"]
        session = {"id": next(iter(gateway.authorizations)), "client_reference_id": str(order["orderId"])}

        assert self._post(client, "checkout.session.completed", session).json()["data"] == {"result": "captured"}
        assert self._post(client, "checkout.session.completed", session).json()["data"] == {"result": "captured"}

        assert len(gateway.captures) == 1
        assert db.query(PurchasedTicket).count() == 1

    def test_expired_session_cancels(self, client, jazz_night, stripe_events):
        event, ga = jazz_night
        order = _purchase(client, event.id, ga.id, 1).json()["data"]
        session = {"id": "cs_expired", "metadata": {"order_id": str(order["orderId"])}}

        response = self._post(client, "checkout.session.expired", session)
        assert response.json()["data"] == {"result": "cancelled"}
        assert client.get(f"/orders/{order['orderId']}").json()["data"]["status"] == "cancelled"

    def test_bad_signature(self, client, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
        response = client.post("/payments/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=bad"})
        assert response.status_code == 400
        assert response.json()["success"] is False


def test_health_checks_database(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"] == {"database": "ok"}


def test_health_when_database_is_down(client):
    class UnreachableSession:
        def execute(self, statement):
            raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    app.dependency_overrides[get_db] = lambda: UnreachableSession()
    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert response.json()["data"] == {"database": "error"}
