"""
Tests for environment defaults and option merging.
"""
import pytest

from cache_inflight import (
    DEFAULT_MAX_SIZE,
    InflightOptions,
    MemoryEvictionStore,
    get_default_max_size,
    get_default_ttl_seconds,
    merge_inflight_options,
    normalize_ttl,
)


class TestGetDefaultMaxSize:
    """Tests for get_default_max_size()."""

    def test_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should return 1000 when unset."""
        monkeypatch.delenv("CACHE_INFLIGHT_MAX_SIZE", raising=False)
        assert get_default_max_size() == DEFAULT_MAX_SIZE == 1000

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should read a positive integer from the environment."""
        monkeypatch.setenv("CACHE_INFLIGHT_MAX_SIZE", "50")
        assert get_default_max_size() == 50

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_invalid_falls_back(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        """Should fall back to the default for invalid values."""
        monkeypatch.setenv("CACHE_INFLIGHT_MAX_SIZE", raw)
        assert get_default_max_size() == 1000


class TestGetDefaultTtlSeconds:
    """Tests for get_default_ttl_seconds()."""

    def test_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CACHE_INFLIGHT_TTL_SECONDS", raising=False)
        assert get_default_ttl_seconds() is None

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_INFLIGHT_TTL_SECONDS", "2.5")
        assert get_default_ttl_seconds() == 2.5

    def test_invalid(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_INFLIGHT_TTL_SECONDS", "soon")
        assert get_default_ttl_seconds() is None


class TestMergeInflightOptions:
    """Tests for merge_inflight_options() and normalize_ttl()."""

    def test_none(self) -> None:
        """Should return empty options."""
        options = merge_inflight_options()

        assert options.cache is None
        assert options.ttl_seconds is None

    def test_keeps_cache_and_positive_ttl(self) -> None:
        store = MemoryEvictionStore(max_size=2)
        options = merge_inflight_options(InflightOptions(cache=store, ttl_seconds=3))

        assert options.cache is store
        assert options.ttl_seconds == 3.0

    @pytest.mark.parametrize("ttl", [None, 0, -1])
    def test_non_positive_ttl_dropped(self, ttl) -> None:
        assert normalize_ttl(ttl) is None
        assert merge_inflight_options(InflightOptions(ttl_seconds=ttl)).ttl_seconds is None
