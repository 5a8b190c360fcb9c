"""
Machine-readable reporting: statistics and categorized messages.
"""

from .messages import MessageReporter
from .service_messages import ServiceMessageWriter, escape_value, format_service_message
from .statistics import StatisticsSink

__all__ = [
    "MessageReporter",
    "ServiceMessageWriter",
    "StatisticsSink",
    "escape_value",
    "format_service_message",
]
