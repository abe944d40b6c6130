"""Domain events — immutable records of catalog mutations.

Learn: The catalog service builds exactly one event per successful write.
The same event drives both cache invalidation and the realtime broadcast,
so the two can never disagree about what changed.

Created/Updated carry the full product snapshot so clients can patch their
listing without a round-trip; Deleted only needs the id.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Union

from vitrine.events.types import PRODUCT_CREATED, PRODUCT_DELETED, PRODUCT_UPDATED


@dataclass(frozen=True)
class ProductCreated:
    product_id: uuid.UUID
    product: dict[str, Any] = field(hash=False)
    type: str = field(default=PRODUCT_CREATED, init=False)


@dataclass(frozen=True)
class ProductUpdated:
    product_id: uuid.UUID
    product: dict[str, Any] = field(hash=False)
    type: str = field(default=PRODUCT_UPDATED, init=False)


@dataclass(frozen=True)
class ProductDeleted:
    product_id: uuid.UUID
    type: str = field(default=PRODUCT_DELETED, init=False)


DomainEvent = Union[ProductCreated, ProductUpdated, ProductDeleted]


def to_message(event: DomainEvent) -> dict[str, Any]:
    """Wire shape: {"type": ..., "id": ..., "product": {...}}."""
    message: dict[str, Any] = {"type": event.type, "id": str(event.product_id)}
    if not isinstance(event, ProductDeleted):
        message["product"] = event.product
    return message


def encode(event: DomainEvent) -> str:
    return json.dumps(to_message(event), default=str)
