# backend/tutorslots/middleware/__init__.py
