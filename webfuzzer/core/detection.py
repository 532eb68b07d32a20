"""Marker registration and the observation log.

Injectors append Observation records; classification reads them back per
marker. A marker has exactly one writer: registering it twice while the
first registration is live is an error.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from webfuzzer.core.models import DetectionResult, Observation
from webfuzzer.core.validator import Validator, extract_sensitive


@dataclass
class Registration:
    marker: str
    target: str
    rendered: str = ""          # payload as sent, marker substituted


class ObservationLog:
    def __init__(self):
        self._records: Dict[str, List[Observation]] = {}

    def append(self, observation: Observation) -> None:
        self._records.setdefault(observation.marker, []).append(observation)

    def for_marker(self, marker: str) -> List[Observation]:
        return list(self._records.get(marker, ()))

    def drop(self, marker: str) -> None:
        self._records.pop(marker, None)

    def __iter__(self) -> Iterator[Observation]:
        for records in self._records.values():
            yield from records

    def __len__(self) -> int:
        return sum(len(r) for r in self._records.values())


def evaluated(text: str, registration: Registration) -> bool:
    """A template payload ran if its 7*7 came back as 49 right after the marker."""
    return "7*7" in registration.rendered and f"{registration.marker}49" in text


def classify(observations: List[Observation], registration: Registration,
             validator: Validator) -> DetectionResult:
    """Judge a marker's captured responses.

    File signatures are only meaningful when the payload aimed at a file. A
    target-less payload counts only through its own echo: a verbatim
    reflection or an evaluated template expression.
    """
    text = "\n".join(o.new_value for o in observations
                     if o.change_kind == "response" and o.new_value)
    if registration.target:
        result = validator.validate(text, registration.target)
    else:
        result = DetectionResult(sensitive_data=extract_sensitive(text))
        if evaluated(text, registration):
            result.vulnerable = True
            result.confidence = 100.0
            result.matched_signatures = [f"{registration.marker}49"]
            result.file_type = "template"
    rendered = registration.rendered
    result.reflected = bool(rendered) and registration.marker in rendered and rendered in text
    return result


class Detector:
    def __init__(self, validator: Optional[Validator] = None):
        self.validator = validator or Validator()
        self.log = ObservationLog()
        self._registrations: Dict[str, Registration] = {}

    def register(self, marker: str, target: str, rendered: str = "") -> None:
        if marker in self._registrations:
            raise ValueError(f"marker {marker!r} is already registered")
        self._registrations[marker] = Registration(marker, target, rendered)

    def release(self, marker: str) -> None:
        self._registrations.pop(marker, None)
        self.log.drop(marker)

    def observe(self, observation: Observation) -> None:
        self.log.append(observation)

    def query(self, marker: str) -> DetectionResult:
        registration = self._registrations.get(marker)
        if registration is None:
            raise KeyError(f"marker {marker!r} is not registered")
        return classify(self.log.for_marker(marker), registration, self.validator)

    @property
    def active(self) -> int:
        return len(self._registrations)
