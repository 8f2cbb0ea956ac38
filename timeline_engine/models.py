"""
Domain records shared by the storage, processing and scheduling layers.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldTemplate:
    """A form field every timeline of a sub-obligation carries."""
    name: str
    type: str = "text"


@dataclass(frozen=True)
class SubObligation:
    """A sub-obligation with its cadence and stored (raw) frequency configuration."""
    id: str
    name: str
    cadence: str
    frequency_config: Dict[str, Any] = field(default_factory=dict)
    fields: List[FieldTemplate] = field(default_factory=list)


@dataclass(frozen=True)
class Obligation:
    id: str
    name: str
    sub_obligations: List[SubObligation] = field(default_factory=list)


@dataclass(frozen=True)
class ClientObligationAssignment:
    """Link between a client and an obligation, optionally pinned to one sub-obligation."""
    obligation_id: str
    sub_obligation_id: Optional[str] = None
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    branch_id: Optional[str] = None
    status: str = "active"
    assignments: List[ClientObligationAssignment] = field(default_factory=list)


@dataclass(frozen=True)
class TimelineKey:
    """Materialization key: at most one timeline exists per key."""
    client_id: str
    obligation_id: str
    sub_obligation_id: Optional[str]
    period: str

    def __str__(self) -> str:
        return (
            f"client={self.client_id} obligation={self.obligation_id} "
            f"sub_obligation={self.sub_obligation_id or '-'} period={self.period}"
        )


@dataclass(frozen=True)
class TimelineMetadata:
    """Everything the Materializer stores alongside the key and due date."""
    branch_id: Optional[str]
    cadence: str
    frequency_config: Dict[str, Any]
    sub_obligation: Dict[str, Any]
    financial_year: str
    fields: List[Dict[str, Any]] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TimelineRecord:
    id: int
    key: TimelineKey
    branch_id: Optional[str]
    due_date: datetime
    start_date: datetime
    end_date: datetime
    status: str
    cadence: str
    frequency_config: Dict[str, Any]
    sub_obligation: Dict[str, Any]
    financial_year: str
    fields: List[Dict[str, Any]]
    timeline_type: str
    metadata: Dict[str, Any]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.key.client_id,
            "obligation_id": self.key.obligation_id,
            "sub_obligation_id": self.key.sub_obligation_id,
            "period": self.key.period,
            "branch_id": self.branch_id,
            "due_date": self.due_date.isoformat(),
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "frequency": self.cadence,
            "frequency_config": self.frequency_config,
            "sub_obligation": self.sub_obligation,
            "financial_year": self.financial_year,
            "fields": self.fields,
            "timeline_type": self.timeline_type,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class UpsertResult:
    created: bool
    record: TimelineRecord


@dataclass(frozen=True)
class ItemFailure:
    """One client/sub-obligation item that could not be materialized."""
    client_id: str
    obligation_id: str
    sub_obligation_id: Optional[str]
    cadence: str
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class JobRunResult:
    """Counters for one cadence run."""
    cadence: str
    processed: int = 0
    created: int = 0
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cadence": self.cadence,
            "processed": self.processed,
            "created": self.created,
            "failed": self.failed,
            "failures": [failure.to_dict() for failure in self.failures],
        }


@dataclass
class GenerationSummary:
    """Combined result of running several cadences back to back."""
    results: Dict[str, JobRunResult] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return sum(result.processed for result in self.results.values())

    @property
    def created(self) -> int:
        return sum(result.created for result in self.results.values())

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.results.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "failed": self.failed,
            "duration_seconds": round(self.duration_seconds, 3),
            "results": {name: result.to_dict() for name, result in self.results.items()},
        }
