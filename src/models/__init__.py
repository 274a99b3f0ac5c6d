"""Pydantic data models and schemas."""

from src.models.holders import (
    HolderSeries,
    HoldersSummary,
    RawHolder,
    SeriesPoint,
    TokenMeta,
    TopHolder,
)
from src.models.market import DexPair, TokenPrice
from src.models.metrics import (
    HoldersMetric,
    LiquidityMixMetric,
    LiquidityShare,
    MetricValue,
    PriceMetric,
    RankedHolder,
    TopHoldersMetric,
    TransactionsMetric,
    VolumeMetric,
    parse_metric_value,
)
from src.models.project import ProjectContext, ProjectEntry, ProjectsFile
from src.models.snapshot import (
    CollectedMetric,
    MetricSnapshot,
    ProjectRefreshResult,
    RefreshOutcome,
)
from src.models.types import HolderTag, ProviderName, ResultStatus, TimeRange

__all__ = [
    "CollectedMetric",
    "DexPair",
    "HolderSeries",
    "HolderTag",
    "HoldersMetric",
    "HoldersSummary",
    "LiquidityMixMetric",
    "LiquidityShare",
    "MetricSnapshot",
    "MetricValue",
    "PriceMetric",
    "ProjectContext",
    "ProjectEntry",
    "ProjectRefreshResult",
    "ProjectsFile",
    "ProviderName",
    "RankedHolder",
    "RawHolder",
    "RefreshOutcome",
    "ResultStatus",
    "SeriesPoint",
    "TimeRange",
    "TokenMeta",
    "TokenPrice",
    "TopHolder",
    "TopHoldersMetric",
    "TransactionsMetric",
    "VolumeMetric",
    "parse_metric_value",
]
