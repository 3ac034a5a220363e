# fleettrack/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика, независимая от транспорта (HTTP/WebSocket).
"""
