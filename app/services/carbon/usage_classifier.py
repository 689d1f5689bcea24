"""
Usage Classifier

Decides which estimator applies to a GCP billing export row and extracts the
normalized quantity it needs:

- usage unit "seconds" with a vCPU/core usage type -> ComputeUsage (vCPU-hours)
- usage unit "byte-seconds" with an SSD usage type  -> SsdStorageUsage (TB-hours)
- usage unit "byte-seconds" with a disk/storage type -> HddStorageUsage (TB-hours)
- anything else                                      -> Unclassified

RAM and memory usage types are never estimated. Rows for services with no
estimator mapping, networking (bytes) and unknown usage types classify as
Unclassified and are dropped by the aggregator without failing the batch.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from app.schemas.footprint import UsageRow

SECONDS_PER_HOUR = 3600
BYTES_PER_TERABYTE = 1024 ** 4

# Services the engine has an estimator mapping for
ESTIMATED_SERVICES = frozenset({
    "App Engine",
    "BigQuery",
    "Cloud Dataflow",
    "Cloud Dataproc",
    "Cloud Filestore",
    "Cloud Functions",
    "Cloud Run",
    "Cloud SQL",
    "Cloud Storage",
    "Compute Engine",
    "Kubernetes Engine",
})

COMPUTE_USAGE_TYPE_MARKERS = ("vcpu", "core", "cpu")
SSD_USAGE_TYPE_MARKERS = ("ssd",)
HDD_USAGE_TYPE_MARKERS = ("pd capacity", "storage", "snapshot", "capacity", "hdd")
EXCLUDED_USAGE_TYPE_MARKERS = ("ram", "memory")


class UnclassifiedReason(str, Enum):
    UNKNOWN_SERVICE = "unknown_service"
    EXCLUDED_USAGE_TYPE = "excluded_usage_type"
    UNKNOWN_USAGE_TYPE = "unknown_usage_type"
    UNSUPPORTED_UNIT = "unsupported_unit"


@dataclass(frozen=True)
class ComputeUsage:
    vcpu_hours: float
    usage_ratio: Optional[float] = None


@dataclass(frozen=True)
class SsdStorageUsage:
    terabyte_hours: float


@dataclass(frozen=True)
class HddStorageUsage:
    terabyte_hours: float


@dataclass(frozen=True)
class Unclassified:
    reason: UnclassifiedReason


Classification = Union[ComputeUsage, SsdStorageUsage, HddStorageUsage, Unclassified]


def _has_marker(usage_type: str, markers) -> bool:
    return any(marker in usage_type for marker in markers)


def _is_excluded(usage_type: str) -> bool:
    # whole-word match: "ram" also occurs inside unrelated words
    words = usage_type.replace(":", " ").replace("-", " ").split()
    return any(marker in words for marker in EXCLUDED_USAGE_TYPE_MARKERS)


def byte_seconds_to_terabyte_hours(byte_seconds: float) -> float:
    return byte_seconds / SECONDS_PER_HOUR / BYTES_PER_TERABYTE


def classify(row: UsageRow) -> Classification:
    if row.service_name not in ESTIMATED_SERVICES:
        return Unclassified(UnclassifiedReason.UNKNOWN_SERVICE)

    usage_type = row.usage_type.lower()
    if _is_excluded(usage_type):
        return Unclassified(UnclassifiedReason.EXCLUDED_USAGE_TYPE)

    unit = row.usage_unit.lower()
    if unit == "seconds":
        if _has_marker(usage_type, COMPUTE_USAGE_TYPE_MARKERS):
            return ComputeUsage(
                vcpu_hours=row.usage_amount / SECONDS_PER_HOUR,
                usage_ratio=row.cpu_utilization,
            )
        return Unclassified(UnclassifiedReason.UNKNOWN_USAGE_TYPE)

    if unit == "byte-seconds":
        terabyte_hours = byte_seconds_to_terabyte_hours(row.usage_amount)
        if _has_marker(usage_type, SSD_USAGE_TYPE_MARKERS):
            return SsdStorageUsage(terabyte_hours)
        if _has_marker(usage_type, HDD_USAGE_TYPE_MARKERS):
            return HddStorageUsage(terabyte_hours)
        return Unclassified(UnclassifiedReason.UNKNOWN_USAGE_TYPE)

    return Unclassified(UnclassifiedReason.UNSUPPORTED_UNIT)
