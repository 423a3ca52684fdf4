"""
Endpoint registry - Endpoints to probe and their metric extractors.

Endpoints are plain data. The behaviour attached to them lives in the
EXTRACTORS strategy table, keyed by MetricKind, so new endpoints only need
a new registry entry (or a config file entry) and never a code change in
the prober, detector or store.
"""

from typing import Callable, Dict, List

from statpulse.health.models import (
    DomainMetric,
    EndpointDescriptor,
    MetricKind,
    MetricSpec,
    MetricValue,
)

NSI_BASE_URL = "https://nsi-demo-stable.siscc.org/rest"

DEFAULT_ENDPOINTS: List[EndpointDescriptor] = [
    EndpointDescriptor(
        name="Structures",
        url=f"{NSI_BASE_URL}/datastructure/all/all/all?detail=allstubs",
        metric=MetricSpec(
            kind=MetricKind.COUNT,
            label="DataStructure count",
            pattern="DataStructure",
        ),
    ),
    EndpointDescriptor(
        name="Data Query",
        url=f"{NSI_BASE_URL}/data/OECD.CFE,INBOUND@TOURISM_TRIPS,2.0",
        metric=MetricSpec(kind=MetricKind.SIZE_KB, label="Response size KB"),
    ),
    EndpointDescriptor(
        name="Codelists",
        url=f"{NSI_BASE_URL}/codelist/all/all/latest?detail=allstubs",
        metric=MetricSpec(
            kind=MetricKind.COUNT,
            label="Codelist count",
            pattern="Codelist",
        ),
    ),
]


def count_occurrences(body: str, spec: MetricSpec) -> MetricValue:
    """Count non-overlapping occurrences of spec.pattern in body."""
    if not spec.pattern:
        return 0
    return body.count(spec.pattern)


def body_size_kb(body: str, spec: MetricSpec) -> MetricValue:
    """UTF-8 size of body in KB, rounded to 2 decimals."""
    return round(len(body.encode("utf-8")) / 1024, 2)


EXTRACTORS: Dict[MetricKind, Callable[[str, MetricSpec], MetricValue]] = {
    MetricKind.COUNT: count_occurrences,
    MetricKind.SIZE_KB: body_size_kb,
}


def extract_metric(spec: MetricSpec, body: str) -> DomainMetric:
    """
    Apply the extractor registered for spec.kind to a response body.

    Args:
        spec: Metric specification of the endpoint
        body: Decoded response body

    Returns:
        DomainMetric with spec.label and the extracted value

    Raises:
        KeyError: If no extractor is registered for spec.kind
    """
    extractor = EXTRACTORS[spec.kind]
    return DomainMetric(label=spec.label, value=extractor(body, spec))


def empty_metric(spec: MetricSpec) -> DomainMetric:
    """Metric placeholder used when no body could be read."""
    return DomainMetric(label=spec.label, value=None)
