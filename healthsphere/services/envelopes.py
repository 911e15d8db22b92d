"""
Response envelope decoders.

Listing endpoints do not agree on how they wrap their items. Each
decoder below recognizes one wrapping and either returns the items or
declines with None; a listing is normalized by trying an ordered set of
decoders and taking the first match.
"""

from typing import Any, List, NamedTuple, Optional, Sequence


class BareList:
    """The payload is the list itself."""

    name = "list"

    def decode(self, payload: Any) -> Optional[list]:
        return payload if isinstance(payload, list) else None


class KeyedList:
    """The list sits under a single named key, e.g. {"doctors": [...]}."""

    def __init__(self, key: str):
        self.key = key
        self.name = key

    def decode(self, payload: Any) -> Optional[list]:
        if isinstance(payload, dict) and isinstance(payload.get(self.key), list):
            return payload[self.key]
        return None


class SuccessData:
    """The {"success": true, "data": [...]} wrapping."""

    name = "success/data"

    def decode(self, payload: Any) -> Optional[list]:
        if (
            isinstance(payload, dict)
            and payload.get("success")
            and isinstance(payload.get("data"), list)
        ):
            return payload["data"]
        return None


class Normalized(NamedTuple):
    items: List[Any]
    matched: Optional[str]

    @property
    def recognized(self) -> bool:
        return self.matched is not None


def normalize(payload: Any, decoders: Sequence) -> Normalized:
    """
    Flatten a listing payload with the first decoder that accepts it.

    When every decoder declines, the result is empty and unrecognized.
    """
    for decoder in decoders:
        items = decoder.decode(payload)
        if items is not None:
            return Normalized(list(items), decoder.name)
    return Normalized([], None)


DOCTOR_DECODERS = (BareList(), KeyedList("doctors"), KeyedList("content"), SuccessData())

SLOT_DECODERS = (BareList(), KeyedList("availableSlots"), KeyedList("slots"), SuccessData())

# Appointment and record listings come back as plain lists today; the
# success/data form is accepted as well.
LISTING_DECODERS = (BareList(), KeyedList("content"), SuccessData())
