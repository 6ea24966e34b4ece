from .aggregator import TripAggregator, TripConfig, classify_transport_mode, compliance_score

__all__ = ["TripAggregator", "TripConfig", "classify_transport_mode", "compliance_score"]
