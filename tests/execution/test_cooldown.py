"""Tests for the cooldown cache."""

from hookrelay.core.config import CooldownConfig
from hookrelay.execution.cooldown import CooldownCache


class TestCooldownCache:
    """Tests for CooldownCache."""

    def test_unknown_key_may_send(self, clock):
        """A key never marked is always allowed."""
        cache = CooldownCache(60.0, clock=clock)
        assert cache.should_send("a") is True
        assert cache.remaining_cooldown("a") is None

    def test_suppressed_inside_window(self, clock):
        """A marked key is suppressed until the period elapses."""
        cache = CooldownCache(60.0, clock=clock)
        cache.mark_sent("a")

        clock.advance(59.9)
        assert cache.should_send("a") is False
        assert round(cache.remaining_cooldown("a"), 3) == 0.1

    def test_allowed_exactly_at_period(self, clock):
        """The window is half-open: elapsed == period may send."""
        cache = CooldownCache(60.0, clock=clock)
        cache.mark_sent("a")
        clock.advance(60.0)
        assert cache.should_send("a") is True
        assert cache.remaining_cooldown("a") is None

    def test_keys_are_independent(self, clock):
        """Suppressing one key does not affect another."""
        cache = CooldownCache(60.0, clock=clock)
        cache.mark_sent("a")
        assert cache.should_send("b") is True

    def test_mark_sent_restarts_window(self, clock):
        """Marking again restarts the suppression window."""
        cache = CooldownCache(10.0, clock=clock)
        cache.mark_sent("a")
        clock.advance(8)
        cache.mark_sent("a")
        clock.advance(8)
        assert cache.should_send("a") is False

    def test_capacity_evicts_oldest(self, clock):
        """Exceeding max_entries evicts the least recently sent keys."""
        cache = CooldownCache(60.0, max_entries=2, clock=clock)
        cache.mark_sent("a")
        clock.advance(1)
        cache.mark_sent("b")
        clock.advance(1)
        cache.mark_sent("c")

        assert cache.size == 2
        # "a" was evicted, so it is no longer suppressed
        assert cache.should_send("a") is True
        assert cache.should_send("b") is False
        assert cache.should_send("c") is False

    def test_remark_refreshes_eviction_order(self, clock):
        """Re-marking a key makes it the newest entry."""
        cache = CooldownCache(60.0, max_entries=2, clock=clock)
        cache.mark_sent("a")
        cache.mark_sent("b")
        cache.mark_sent("a")
        cache.mark_sent("c")

        assert cache.should_send("b") is True
        assert cache.should_send("a") is False

    def test_clear(self, clock):
        """clear forgets every key."""
        cache = CooldownCache(60.0, clock=clock)
        cache.mark_sent("a")
        cache.clear()
        assert cache.size == 0
        assert cache.should_send("a") is True

    def test_from_config(self, clock):
        """from_config maps the value object."""
        cache = CooldownCache.from_config(CooldownConfig(cooldown_period=5.0, max_entries=3), clock=clock)
        assert cache.cooldown_period == 5.0
        for key in "abcd":
            cache.mark_sent(key)
        assert cache.size == 3
