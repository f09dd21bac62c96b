"""Scoring, ranking and scheduling services."""
from .analyzer import PositionAnalyzer
from .engine import RecommendationEngine
from .scheduler import Scheduler

__all__ = ["PositionAnalyzer", "RecommendationEngine", "Scheduler"]
