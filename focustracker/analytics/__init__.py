from .aggregator import Aggregator
from .quality import QualityAnalyzer

__all__ = ["Aggregator", "QualityAnalyzer"]
