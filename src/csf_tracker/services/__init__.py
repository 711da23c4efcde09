"""Read-side services built on top of the stores."""

from csf_tracker.services.aggregator import CrossLinkAggregator

__all__ = ["CrossLinkAggregator"]
