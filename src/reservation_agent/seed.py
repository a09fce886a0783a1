"""Demo availability table loaded into the slot store at startup."""

from __future__ import annotations

from copy import deepcopy
from typing import Dict

AvailabilityTable = Dict[str, Dict[str, Dict[int, bool]]]

DEFAULT_AVAILABILITY: AvailabilityTable = {
    "2024-08-01": {
        "18:00": {2: True, 4: True},
        "18:30": {2: True, 4: False},
        "19:00": {2: True, 4: True},
        "19:30": {2: False, 4: True},
        "20:00": {2: True, 4: True},
        "20:30": {2: True, 4: False},
    },
    "2024-08-02": {
        "18:00": {2: True, 4: True},
        "18:30": {2: True, 4: True},
        "19:00": {2: True, 4: True},
        "19:30": {2: True, 4: True},
        "20:00": {2: True, 4: True},
        "20:30": {2: True, 4: True},
    },
}


def default_availability() -> AvailabilityTable:
    """Fresh copy of the demo table; callers are free to mutate it."""
    return deepcopy(DEFAULT_AVAILABILITY)
