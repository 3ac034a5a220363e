# fleettrack/services/realtime_ws/__init__.py
"""
Real-time рассылка обновлений позиций по WebSocket.
"""

from fleettrack.services.realtime_ws.connection_manager import Subscriber, SubscriberRegistry
from fleettrack.services.realtime_ws.redis_relay import RedisUpdateRelay

__all__ = ["RedisUpdateRelay", "Subscriber", "SubscriberRegistry"]
