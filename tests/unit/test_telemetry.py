"""Unit tests for core/telemetry.py."""

import pytest

from core.telemetry import (
    LookupTelemetry,
    get_cache_stats,
    init_cache_stats,
    record_api_time,
    record_memory_cache_hit,
    record_provider_api_call,
)

# ---------------------------------------------------------------------------
# LookupTelemetry
# ---------------------------------------------------------------------------


class TestLookupTelemetry:
    def test_track_step_records_duration(self):
        t = LookupTelemetry()
        with t.track_step("test_step"):
            pass
        assert "test_step" in t.steps
        assert t.steps["test_step"].duration_ms >= 0
        assert t.steps["test_step"].success is True

    def test_track_step_records_exception(self):
        t = LookupTelemetry()
        with pytest.raises(ValueError):
            with t.track_step("failing_step"):
                raise ValueError("boom")
        assert t.steps["failing_step"].success is False
        assert t.steps["failing_step"].error_type == "ValueError"

    def test_repeated_step_accumulates(self):
        t = LookupTelemetry()
        with t.track_step("provider_fan_out"):
            pass
        first = t.steps["provider_fan_out"].duration_ms
        with t.track_step("provider_fan_out"):
            pass
        assert t.steps["provider_fan_out"].duration_ms >= first

    def test_repeated_step_keeps_earlier_failure(self):
        t = LookupTelemetry()
        with pytest.raises(RuntimeError):
            with t.track_step("merge_persist"):
                raise RuntimeError("store down")
        with t.track_step("merge_persist"):
            pass
        assert t.steps["merge_persist"].success is False
        assert t.steps["merge_persist"].error_type == "RuntimeError"

    def test_api_calls_start_at_zero_for_every_provider(self):
        t = LookupTelemetry()
        assert t.api_calls == {
            "musicbrainz": 0,
            "discogs": 0,
            "lastfm": 0,
            "itunes": 0,
            "spotify": 0,
            "wikipedia": 0,
        }

    def test_record_api_call_known_provider(self):
        t = LookupTelemetry()
        t.record_api_call("discogs")
        t.record_api_call("discogs")
        assert t.api_calls["discogs"] == 2

    def test_record_api_call_unknown_provider(self):
        t = LookupTelemetry()
        t.record_api_call("napster")
        assert "napster" not in t.api_calls

    def test_get_total_duration_ms(self):
        assert LookupTelemetry().get_total_duration_ms() >= 0

    def test_get_step_timings(self):
        t = LookupTelemetry()
        with t.track_step("local_lookup"):
            pass
        with t.track_step("provider_fan_out"):
            pass
        timings = t.get_step_timings()
        assert "local_lookup_ms" in timings
        assert "provider_fan_out_ms" in timings

    def test_send_to_posthog_step_events(self, mock_posthog_client):
        t = LookupTelemetry()
        with t.track_step("local_lookup"):
            pass
        t.send_to_posthog(mock_posthog_client)

        step_call = mock_posthog_client.capture.call_args_list[0]
        assert step_call[1]["event"] == "lookup_local_lookup"
        assert step_call[1]["properties"]["step"] == "local_lookup"

    def test_send_to_posthog_summary_event(self, mock_posthog_client):
        t = LookupTelemetry()
        t.record_api_call("lastfm")
        with t.track_step("s"):
            pass
        t.send_to_posthog(mock_posthog_client, {"entity_type": "artist"})

        summary_call = mock_posthog_client.capture.call_args_list[-1]
        assert summary_call[1]["event"] == "lookup_completed"
        props = summary_call[1]["properties"]
        assert props["entity_type"] == "artist"
        assert props["api_calls"]["lastfm"] == 1

    def test_send_to_posthog_with_cache_stats(self, mock_posthog_client):
        init_cache_stats()
        record_memory_cache_hit()

        t = LookupTelemetry()
        t.send_to_posthog(mock_posthog_client)

        summary_props = mock_posthog_client.capture.call_args_list[-1][1]["properties"]
        assert summary_props["cache"]["memory_hits"] == 1

    def test_send_to_posthog_without_cache_stats(self, mock_posthog_client):
        t = LookupTelemetry()
        t.send_to_posthog(mock_posthog_client)

        summary_props = mock_posthog_client.capture.call_args_list[-1][1]["properties"]
        assert summary_props["cache"]["memory_hits"] == 0


# ---------------------------------------------------------------------------
# ContextVar cache stats
# ---------------------------------------------------------------------------


class TestCacheStats:
    def test_get_cache_stats_before_init(self):
        assert get_cache_stats() is None

    def test_init_cache_stats(self):
        init_cache_stats()
        assert get_cache_stats() == {"memory_hits": 0, "api_calls": 0, "api_time_ms": 0.0}

    def test_record_memory_cache_hit(self):
        init_cache_stats()
        record_memory_cache_hit()
        record_memory_cache_hit()
        assert get_cache_stats()["memory_hits"] == 2

    def test_record_provider_api_call(self):
        init_cache_stats()
        record_provider_api_call()
        assert get_cache_stats()["api_calls"] == 1

    def test_record_api_time(self):
        init_cache_stats()
        record_api_time(10.0)
        record_api_time(5.0)
        assert get_cache_stats()["api_time_ms"] == 15.0

    def test_record_functions_noop_without_init(self):
        """Record functions should be no-ops when stats not initialized."""
        record_memory_cache_hit()
        record_provider_api_call()
        record_api_time(1.0)
        assert get_cache_stats() is None
