from .metric_delta import counter_value, histogram_observes, metric_delta

__all__ = ["counter_value", "histogram_observes", "metric_delta"]
