"""
HTTP routers for the dashboard API.

Every router is mounted under ``API_PREFIX`` by ``main.py``.
"""

API_PREFIX = "/api"
