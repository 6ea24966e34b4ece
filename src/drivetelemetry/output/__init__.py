from .notifier import FeedbackSink, HttpWebhookFeedbackSink, LogFeedbackSink, create_feedback_sink
from .sinks import CsvTripSummaryStore, JsonlTripStore, MemoryTripStore, TripStore, TripStores, trip_to_dict

__all__ = [
    "CsvTripSummaryStore",
    "FeedbackSink",
    "HttpWebhookFeedbackSink",
    "JsonlTripStore",
    "LogFeedbackSink",
    "MemoryTripStore",
    "TripStore",
    "TripStores",
    "create_feedback_sink",
    "trip_to_dict",
]
