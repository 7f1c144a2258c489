# Application Stats Package
from .calculator import StatsCalculator, is_mastered, needs_practice
from .service import ProgressAggregator

__all__ = ["StatsCalculator", "ProgressAggregator", "is_mastered", "needs_practice"]
