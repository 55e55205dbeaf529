from __future__ import annotations

import secrets
import string
import uuid
from typing import NewType

from headshot_common.utils.utils import get_now_ms

RequestId = NewType("RequestId", str)
UserId = NewType("UserId", str)
PurchaseId = NewType("PurchaseId", str)
ReservationId = NewType("ReservationId", str)
HeadshotId = NewType("HeadshotId", str)

_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_request_id() -> RequestId:
    return RequestId(uuid.uuid4().hex)


def new_purchase_id() -> PurchaseId:
    return PurchaseId(f"purchase_{get_now_ms()}_{_random_suffix()}")


def new_reservation_id() -> ReservationId:
    return ReservationId(f"reservation_{get_now_ms()}_{_random_suffix()}")


def new_headshot_ids(count: int) -> list[HeadshotId]:
    """Ids for one generated batch share a batch prefix and carry their index."""
    prefix = f"headshot_{get_now_ms()}_{_random_suffix(6)}"
    return [HeadshotId(f"{prefix}_{index}") for index in range(count)]
