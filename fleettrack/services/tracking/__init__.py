# fleettrack/services/tracking/__init__.py
"""
Tracking Service: приём GPS-данных, история, снимок для карты.
"""
