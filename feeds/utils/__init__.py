from .env import database_url, load_env
from .http import make_session, request_json
from .logger_utils import setup_logging
from .schedule import ScheduleGate, TimeWindow

__all__ = [
    "database_url",
    "load_env",
    "make_session",
    "request_json",
    "setup_logging",
    "ScheduleGate",
    "TimeWindow",
]
