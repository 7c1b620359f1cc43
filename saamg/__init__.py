"""Smoothed-aggregation algebraic multigrid preconditioning."""
from . import sa
from .preconditioner import SmoothedAggregationAMG, smoothed_aggregation_preconditioner
from .sa.types import AMGConfig, UnaggregatedNodeWarning

__all__ = [
    'sa',
    'AMGConfig',
    'SmoothedAggregationAMG',
    'UnaggregatedNodeWarning',
    'smoothed_aggregation_preconditioner',
]
