# Application Scheduler Package
from .engine import SchedulerEngine
from .weights import WeightBreakdown, WeightPolicy

__all__ = ["SchedulerEngine", "WeightBreakdown", "WeightPolicy"]
