from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from farmtrace.core.errors import InvalidInputError


class PayloadKind(str, Enum):
    shipment = "shipment"
    status_update = "status_update"
    event = "event"


def payload_type(payload: Optional[Mapping[str, Any]]) -> Optional[Any]:
    return payload.get("type") if payload else None


def payload_action(payload: Optional[Mapping[str, Any]]) -> Optional[Any]:
    return payload.get("action") if payload else None


def payload_status(payload: Optional[Mapping[str, Any]]) -> Optional[Any]:
    return payload.get("status") if payload else None


def is_shipment(payload: Optional[Mapping[str, Any]]) -> bool:
    return payload_type(payload) == "shipment" or payload_action(payload) == "transport"


def classify_payload(payload: Optional[Mapping[str, Any]]) -> PayloadKind:
    """
    Tag an untyped block payload by the recognised fields it carries.
    Shipment wins over status: a transport block may also carry a status.
    """
    if is_shipment(payload):
        return PayloadKind.shipment
    if payload_status(payload):
        return PayloadKind.status_update
    return PayloadKind.event


def require_document(payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidInputError(
            "Block payload must be a JSON object.",
            {"payloadType": type(payload).__name__},
        )
    return payload
