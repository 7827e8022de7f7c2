"""
Data model for scraped products and per-query results.
Records keep a stable shape: missing fields carry a sentinel instead of being omitted.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

NOT_AVAILABLE = "N/A"

# Record attribute -> JSON key
_PAYLOAD_KEYS = {
    'name': 'name',
    'rating': 'rating',
    'review_count': 'reviewCount',
    'recent_purchase_volume': 'recentPurchaseVolume',
    'price': 'price',
    'original_price': 'originalPrice',
    'discount_label': 'discountLabel',
    'availability': 'availability',
    'image_url': 'imageUrl',
    'detail_url': 'detailUrl',
}

RECORD_FIELDS = tuple(_PAYLOAD_KEYS)


@dataclass(frozen=True)
class ProductRecord:
    """One product listing as rendered on a source's search page."""

    name: str
    rating: str = NOT_AVAILABLE
    review_count: str = NOT_AVAILABLE
    recent_purchase_volume: str = NOT_AVAILABLE
    price: str = NOT_AVAILABLE
    original_price: str = NOT_AVAILABLE
    discount_label: str = NOT_AVAILABLE
    availability: str = NOT_AVAILABLE
    image_url: str = NOT_AVAILABLE
    detail_url: str = NOT_AVAILABLE

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("ProductRecord.name must be non-empty")

    def to_dict(self) -> Dict[str, str]:
        return {_PAYLOAD_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SourceResult:
    """
    Tagged per-source outcome.

    Either ``ok`` with a product sequence (possibly empty) or failed with a
    reason. ``ready_timed_out`` marks the soft success where the page loaded
    but no product container ever rendered.
    """

    records: Tuple[ProductRecord, ...] = ()
    error: Optional[str] = None
    ready_timed_out: bool = False

    @classmethod
    def ok(cls, records, ready_timed_out: bool = False) -> 'SourceResult':
        return cls(records=tuple(records), ready_timed_out=ready_timed_out)

    @classmethod
    def failed(cls, reason: str) -> 'SourceResult':
        return cls(records=(), error=reason or "unknown error")

    @property
    def is_ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AggregateResult:
    """Merged outcome of one query across all configured sources."""

    results: Mapping[str, SourceResult]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Freeze the mapping so the aggregate cannot change after construction
        object.__setattr__(self, 'results', MappingProxyType(dict(self.results)))

    @property
    def failures(self) -> Dict[str, str]:
        """Failure reasons by source id, kept for diagnostics."""
        return {source_id: result.error for source_id, result in self.results.items()
                if not result.is_ok}

    def records_for(self, source_id: str) -> List[ProductRecord]:
        return list(self.results[source_id].records)

    def to_payload(self) -> Dict[str, Any]:
        """
        Build the user-facing JSON payload.

        Failed sources collapse to an empty list; their reasons are joined
        into a single ``error`` entry only when at least one source failed.
        """
        payload: Dict[str, Any] = {
            source_id: [record.to_dict() for record in result.records]
            for source_id, result in self.results.items()
        }
        payload['timestamp'] = self.timestamp.isoformat().replace('+00:00', 'Z')
        failures = self.failures
        if failures:
            payload['error'] = "; ".join(f"{source_id}: {reason}" for source_id, reason in failures.items())
        return payload
