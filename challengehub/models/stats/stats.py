"""
Stat Models

A stat document (stats/{userId}, stats/org_{orgId}, stats/public) maps
metric names to one of a closed set of metric shapes. Every stored metric
carries a `kind` tag, and code dispatches on that tag.

    array       {"kind": "array", "ids": [...], "prev": n}
                value = len(ids); ids make add/remove idempotent
    scalar      {"kind": "scalar", "value": n, "prev": n}
    prize_pool  {"kind": "prize_pool", "value": n, "prev": n,
                 "added_challenge_ids": [...]}
                added_challenge_ids guards against adding a prize twice
"""
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum


class MetricKind(str, Enum):
    ARRAY = "array"
    SCALAR = "scalar"
    PRIZE_POOL = "prize_pool"


class ArrayMetric(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["array"] = "array"
    ids: List[str] = []
    prev: float = 0

    def magnitude(self) -> float:
        return len(self.ids)


class ScalarMetric(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["scalar"] = "scalar"
    value: float = 0
    prev: float = 0

    def magnitude(self) -> float:
        return self.value


class PrizePoolMetric(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["prize_pool"] = "prize_pool"
    value: float = 0
    prev: float = 0
    added_challenge_ids: List[str] = []

    def magnitude(self) -> float:
        return self.value


StatMetric = Annotated[
    Union[ArrayMetric, ScalarMetric, PrizePoolMetric],
    Field(discriminator="kind"),
]

_metric_adapter = TypeAdapter(StatMetric)


def parse_metric(raw: Any) -> Optional[StatMetric]:
    """
    Parse a stored field into a metric.

    Returns None for anything that is not a tagged metric (timestamps,
    bookkeeping sub-documents such as _completion_tracking, untagged
    legacy values).
    """
    if not isinstance(raw, dict) or "kind" not in raw:
        return None
    try:
        return _metric_adapter.validate_python(raw)
    except ValidationError:
        return None


def metric_magnitudes(doc: Dict[str, Any]) -> Dict[str, float]:
    """Current magnitude of every tagged metric in a stat document"""
    magnitudes = {}
    for name, raw in doc.items():
        if name == "_id":
            continue
        metric = parse_metric(raw)
        if metric is not None:
            magnitudes[name] = metric.magnitude()
    return magnitudes


class CompletionTracking(BaseModel):
    """Running totals behind an organization's weighted completion rate"""
    model_config = ConfigDict(extra="ignore")

    total_participants: int = 0
    total_submissions: int = 0


# Metric names used by the midnight run
ACTIVE_CHALLENGES = "active_challenges"
ACTIVE_TEAMS = "active_teams"
COMPLETION_RATE = "completion_rate"
COMPLETION_TRACKING = "_completion_tracking"
PUBLIC_CHALLENGES = "challenges"
PUBLIC_DEVELOPERS = "developers"
PUBLIC_PRIZES = "prizes"
