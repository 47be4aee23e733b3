# backend/tutorslots/routes/__init__.py
"""API routers for the scheduling backend."""
