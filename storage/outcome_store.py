"""In-memory record of pre-generation outcomes for operator visibility."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from core import PreGenerationResult, Topic


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_outcome_id() -> str:
    return f"check_{_utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class OutcomeRecord(BaseModel):
    outcome_id: str
    recorded_at: datetime
    topics: List[str] = Field(default_factory=list)
    can_proceed: bool
    block_reason: Optional[str] = None
    invalid_topics: List[str] = Field(default_factory=list)
    diversity_score: Optional[float] = None
    source_count: int = 0
    pipeline_time_ms: int = 0


class OutcomeSummary(BaseModel):
    total: int = 0
    proceeded: int = 0
    blocked: int = 0
    block_rate: float = 0.0
    by_reason: Dict[str, int] = Field(default_factory=dict)


class OutcomeRecorder(Protocol):
    """Anything that can persist a pipeline verdict. Failures are the caller's to log."""

    def record(self, result: PreGenerationResult, topics: Sequence[Topic]) -> str:
        ...


class InMemoryOutcomeStore:
    """Thread-safe bounded history of pipeline outcomes."""

    def __init__(self, max_records: int = 200) -> None:
        self._records: "OrderedDict[str, OutcomeRecord]" = OrderedDict()
        self._max_records = max(1, int(max_records))
        self._lock = Lock()

    def record(self, result: PreGenerationResult, topics: Sequence[Topic]) -> str:
        allocation = result.allocation_result
        record = OutcomeRecord(
            outcome_id=_new_outcome_id(),
            recorded_at=_utcnow(),
            topics=[topic.title for topic in topics],
            can_proceed=result.can_proceed,
            block_reason=result.block_reason.value if result.block_reason else None,
            invalid_topics=list(result.invalid_topics),
            diversity_score=allocation.diversity_score if allocation else None,
            source_count=len(result.enriched_sources),
            pipeline_time_ms=result.pipeline_time_ms,
        )
        with self._lock:
            self._records[record.outcome_id] = record
            while len(self._records) > self._max_records:
                self._records.popitem(last=False)
        return record.outcome_id

    def get(self, outcome_id: str) -> Optional[OutcomeRecord]:
        with self._lock:
            record = self._records.get(outcome_id)
            return record.model_copy(deep=True) if record else None

    def list_recent(self, limit: int = 20) -> List[OutcomeRecord]:
        """Newest first."""
        if limit <= 0:
            return []
        with self._lock:
            records = list(self._records.values())[-limit:]
        return [item.model_copy(deep=True) for item in reversed(records)]

    def summary(self) -> OutcomeSummary:
        with self._lock:
            records = list(self._records.values())

        blocked = [item for item in records if not item.can_proceed]
        by_reason: Dict[str, int] = {}
        for item in blocked:
            reason = item.block_reason or "unknown"
            by_reason[reason] = by_reason.get(reason, 0) + 1

        total = len(records)
        return OutcomeSummary(
            total=total,
            proceeded=total - len(blocked),
            blocked=len(blocked),
            block_rate=(len(blocked) / total) if total else 0.0,
            by_reason=by_reason,
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
