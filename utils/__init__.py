"""
Utility modules for the idle tab closer.
"""
from .event_logger import EventLogger, get_event_logger, set_event_logger
from .url_utils import ParsedURL, parse_url, host_matches_base, is_special_url

__all__ = [
    "EventLogger",
    "get_event_logger",
    "set_event_logger",
    "ParsedURL",
    "parse_url",
    "host_matches_base",
    "is_special_url",
]
