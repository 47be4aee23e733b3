# backend/tutorslots/tasks/__init__.py
"""Celery tasks for the scheduling backend."""

from .celery_app import celery_app

__all__ = ["celery_app"]
