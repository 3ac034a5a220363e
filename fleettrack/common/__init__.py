# fleettrack/common/__init__.py
"""
Общие утилиты: логирование и константы.
"""
