"""
Environment-driven configuration.

Values are read once at import time from the process environment, with a
local .env file loaded first so development setups don't need exports.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Relational store (cities, places, visits, chat rooms, achievements)
DATABASE_URL = os.getenv("CAMPUS_DATABASE_URL")

# Redis is used for check-in rate limiting and the event stream
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))

# Calendar days for the heatmap date filter are evaluated in this zone
HEATMAP_TIMEZONE = os.getenv("HEATMAP_TIMEZONE", "UTC")

CHECKIN_RATE_LIMIT_WINDOW_SECONDS = 60
CHECKIN_RATE_LIMIT_PER_MINUTE = int(os.getenv("CHECKIN_RATE_LIMIT_PER_MINUTE", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
