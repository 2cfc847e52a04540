from .fake_clock import FakeClock
from .metric_delta import histogram_observes, metric_delta

__all__ = ["FakeClock", "histogram_observes", "metric_delta"]
