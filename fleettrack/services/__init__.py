# fleettrack/services/__init__.py
"""HTTP и WebSocket сервисы."""
