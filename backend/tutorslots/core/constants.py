# backend/tutorslots/core/constants.py
"""
Application-wide constants.
"""

from .config import settings

BRAND_NAME = settings.brand_name

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = f"Backend API for {BRAND_NAME} - tutor availability, bookings and payments"
API_VERSION = "1.0.0"
API_PREFIX = "/api/v1"
