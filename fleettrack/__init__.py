# fleettrack/__init__.py
"""
FleetTrack — приём GPS-координат транспорта, история позиций,
снимок последних позиций для карты и real-time рассылка обновлений.
"""

__version__ = "1.0.0"
