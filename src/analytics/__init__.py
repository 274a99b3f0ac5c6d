"""Token analytics: holder shares, provider fallback chains, metric assembly.

Exports:
    - HoldersService / compute_shares: Holder summary and share analytics
    - ProviderService: Per-metric provider fallback façade
    - MetricAssembler: ProjectContext + TimeRange → MetricValue
"""

from src.analytics.assembler import MetricAssembler, series_change
from src.analytics.holders import HoldersService, clamp_limit_top, compute_shares
from src.analytics.provider_service import ProviderService, liquidity_shares

__all__ = [
    "HoldersService",
    "MetricAssembler",
    "ProviderService",
    "clamp_limit_top",
    "compute_shares",
    "liquidity_shares",
    "series_change",
]
