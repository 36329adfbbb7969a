"""Unit tests for PresenceRegistry"""
import pytest

from realtime.presence import PresenceRegistry


@pytest.mark.unit
class TestPresenceRegistry:
    """Test online presence tracking"""

    def test_initialization_is_empty(self):
        """Test that a new registry has nobody online"""
        registry = PresenceRegistry()
        assert registry.get_online_count() == 0
        assert registry.lookup("u1") is None

    def test_register_and_lookup(self):
        """Test that a registered user resolves to its connection"""
        registry = PresenceRegistry()
        registry.register("u1", "conn-1")

        assert registry.lookup("u1") == "conn-1"
        assert registry.get_online_count() == 1

    def test_last_connect_wins(self):
        """Test that a second connection replaces the first"""
        registry = PresenceRegistry()
        registry.register("u1", "conn-1")
        registry.register("u1", "conn-2")

        assert registry.lookup("u1") == "conn-2"
        assert registry.get_online_count() == 1

    def test_unregister(self):
        """Test that unregistering takes the user offline"""
        registry = PresenceRegistry()
        registry.register("u1", "conn-1")
        registry.register("u2", "conn-2")

        registry.unregister("u1")

        assert registry.lookup("u1") is None
        assert registry.lookup("u2") == "conn-2"

    def test_unregister_stale_connection_keeps_newer(self):
        """Test that an overwritten connection cannot remove its replacement"""
        registry = PresenceRegistry()
        registry.register("u1", "conn-1")
        registry.register("u1", "conn-2")

        registry.unregister("u1", "conn-1")

        assert registry.lookup("u1") == "conn-2"

    def test_unregister_current_connection(self):
        """Test that the registered connection removes its own entry"""
        registry = PresenceRegistry()
        registry.register("u1", "conn-1")

        registry.unregister("u1", "conn-1")

        assert registry.lookup("u1") is None

    def test_unregister_unknown_user(self):
        """Test that unregistering an offline user does not raise"""
        registry = PresenceRegistry()
        registry.unregister("ghost")
        assert registry.get_online_count() == 0

    def test_registries_do_not_share_state(self):
        """Test that two registries are independent"""
        first = PresenceRegistry()
        second = PresenceRegistry()
        first.register("u1", "conn-1")

        assert second.lookup("u1") is None
