# fleettrack/shared/__init__.py
"""Общие модели для сервисов."""
