"""Confidence weights and decision thresholds for login verification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Probe(Enum):
    URL_CHANGED = "url_changed"
    FORM_GONE = "form_gone"
    SUCCESS_MARKERS = "success_markers"
    ERROR_MARKERS = "error_markers"


@dataclass(frozen=True)
class ProbeWeight:
    when_true: float
    when_false: float


PROBE_WEIGHTS: Mapping[Probe, ProbeWeight] = MappingProxyType(
    {
        Probe.URL_CHANGED: ProbeWeight(when_true=0.90, when_false=0.10),
        Probe.FORM_GONE: ProbeWeight(when_true=0.80, when_false=0.20),
        Probe.SUCCESS_MARKERS: ProbeWeight(when_true=0.85, when_false=0.15),
        Probe.ERROR_MARKERS: ProbeWeight(when_true=0.95, when_false=0.10),
    }
)

# URL change at or above this confidence ends verification immediately.
SHORT_CIRCUIT_CONFIDENCE = 0.8
# Error markers at or above this confidence decide failure.
FAILURE_CONFIDENCE = 0.7
# Sum of positive url/form/success confidences needed for success.
SUCCESS_CONFIDENCE_SUM = 1.5

POSITIVE_PROBES = (Probe.URL_CHANGED, Probe.FORM_GONE, Probe.SUCCESS_MARKERS)


def confidence_for(probe: Probe, outcome: bool) -> float:
    weight = PROBE_WEIGHTS[probe]
    return weight.when_true if outcome else weight.when_false
