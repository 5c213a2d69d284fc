"""Ticket credential payloads and their digests.

The digest is the lookup key at the gate, so the serialized form must be
byte-for-byte reproducible: fixed key order, compact separators, UTF-8.
"""

import hashlib
import json
from typing import Any, Mapping

PAYLOAD_KEYS = ("ticketId", "orderId", "eventId", "ticketNumber", "issuedAt")


def build_payload(ticket_uid: str, order_id: int, event_id: int, ticket_number: str, issued_at_ms: int) -> dict:
    return {
        "ticketId": ticket_uid,
        "orderId": order_id,
        "eventId": event_id,
        "ticketNumber": ticket_number,
        "issuedAt": issued_at_ms,
    }


def serialize_payload(payload: Mapping[str, Any]) -> str:
    ordered = {key: payload[key] for key in PAYLOAD_KEYS if key in payload}
    # unknown keys keep their relative order after the known ones
    ordered.update({key: value for key, value in payload.items() if key not in ordered})
    return json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)


def digest(serialized: str) -> str:
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def digest_presented(presented: str | Mapping[str, Any]) -> str:
    """Digest of a credential as scanned at the gate.

    Strings are hashed exactly as received, objects are serialized first.
    """
    if isinstance(presented, str):
        return digest(presented)
    return digest(serialize_payload(presented))
