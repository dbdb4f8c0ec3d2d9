from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "free_jar.booked",
    "free_jar.rejected",
    "free_jar.claimed",
    "free_jar.delivered",
]
AuditInitiator = Literal["customer", "assistant", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    customer_id: Optional[int],
    slot_date: Optional[date],
    booking_id: Optional[int] = None,
    village_id: Optional[int] = None,
    assistant_id: Optional[int] = None,
    status_from: Optional[Any] = None,
    status_to: Optional[Any] = None,
    reason: Optional[Any] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Emit one structured JSON line on the `audit` logger.

    `reason` is the true internal reason, even when the customer was shown a
    generic network message. Raises RuntimeError if logging fails.
    """
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "booking_id": booking_id,
        "customer_id": customer_id,
        "slot_date": _to_str(slot_date),
        "village_id": village_id,
        "assistant_id": assistant_id,
        "status_from": _to_str(status_from),
        "status_to": _to_str(status_to),
        "reason": _to_str(reason),
    }
    if extra:
        payload.update(extra)

    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
