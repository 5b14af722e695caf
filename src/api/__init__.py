"""
FastAPI dashboard service.

Provides REST API over the unified alert feed:
- GET /dashboard - Summary counts and newest alerts
- GET /alerts, GET /alerts/{id} - Alert list and detail
- POST /alerts/{id}/read, POST /alerts/{id}/resolve - Operator actions
- POST /refresh - Immediate poll
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
