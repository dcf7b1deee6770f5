from .store import Sample, StatisticsStore

__all__ = ["Sample", "StatisticsStore"]
