"""Ranking and query dispatch."""

from .fusion import DEFAULT_RRF_K, ReciprocalRankFusion
from .searcher import Searcher

__all__ = ["DEFAULT_RRF_K", "ReciprocalRankFusion", "Searcher"]
