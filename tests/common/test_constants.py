# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

from fleettrack.common.constants import (
    BroadcastBackend,
    StorageBackend,
    TypeMsg,
    VEHICLE_UPDATE_EVENT,
    VEHICLE_UPDATES_CHANNEL,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        """Проверяет, что TypeMsg является строковым enum."""
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestBackends:
    """Тесты для перечислений backend-ов."""

    def test_storage_backend_from_config_value(self) -> None:
        assert StorageBackend("postgres") is StorageBackend.POSTGRES
        assert StorageBackend("memory") is StorageBackend.MEMORY

    def test_broadcast_backend_from_config_value(self) -> None:
        assert BroadcastBackend("local") is BroadcastBackend.LOCAL
        assert BroadcastBackend("redis") is BroadcastBackend.REDIS


class TestWireNames:
    """Имена события и канала — часть внешнего контракта."""

    def test_event_name(self) -> None:
        assert VEHICLE_UPDATE_EVENT == "vehicle-update"

    def test_channel_name(self) -> None:
        assert VEHICLE_UPDATES_CHANNEL == "vehicle-updates"
