import numpy as np
import pytest

from cgm_episodes.detection import build_episode, detect_episodes, find_recovery, resolve_episodes
from cgm_episodes.detection.scanner import scan_core_intervals
from cgm_episodes.models import DetectionConfig, Direction, RecoveryFallback, Series


def _make_series(values, *, minutes=None, subject="A") -> Series:
    if minutes is None:
        minutes = [index * 5 for index in range(len(values))]
    values = [np.nan if value is None else value for value in values]
    return Series(subject, [m * 60.0 for m in minutes], values, list(range(len(values))))


def _hypo(**overrides) -> DetectionConfig:
    params = dict(entry_threshold=70, recovery_threshold=70, direction=Direction.BELOW)
    params.update(overrides)
    return DetectionConfig(**params)


def _spans(episodes):
    return [(episode.start_index, episode.end_index) for episode in episodes]


def test_single_excursion_ends_before_sustained_recovery():
    series = _make_series([80, 65, 60, 65, 80, 80, 80])

    episodes = detect_episodes(series, _hypo())

    assert _spans(episodes) == [(1, 3)]
    episode = episodes[0]
    assert episode.duration_minutes == 15.0
    assert episode.average_value == pytest.approx((65 + 60 + 65) / 3)
    assert (episode.start_value, episode.end_value) == (65.0, 65.0)
    assert (episode.start_time, episode.end_time) == (300.0, 900.0)


def test_find_recovery_prefers_earliest_sustained_candidate():
    series = _make_series([60, 60, 60, 75, 75, 75, 75, 75])

    outcome = find_recovery(series, _hypo(), 2)

    assert outcome.confirmed
    assert outcome.recovery_index == 3
    assert outcome.confirmed_index == 5
    assert outcome.gap_index is None


def test_find_recovery_moves_past_broken_candidates():
    series = _make_series([60, 75, 75, 65, 72, None, 74, 76, 80])

    outcome = find_recovery(series, _hypo(), 0)

    # 1-2 breaks at 3; the run starting at 4 skips the dropout and is sustained at 6.
    assert outcome.recovery_index == 4
    assert outcome.confirmed_index == 6


def test_find_recovery_stops_at_large_gap():
    series = _make_series([60, 75, 80, 80, 80], minutes=[0, 5, 30, 35, 40])

    outcome = find_recovery(series, _hypo(), 0)

    assert not outcome.confirmed
    assert outcome.gap_index == 2


def test_find_recovery_respects_limit():
    series = _make_series([60, 75, 75, 75, 75])

    assert not find_recovery(series, _hypo(), 0, limit=3).confirmed
    assert find_recovery(series, _hypo(), 0).confirmed


def test_unsustained_dip_merges_excursions():
    series = _make_series([80, 65, 60, 65, 75, 65, 60, 65, 80, 80, 80])
    config = _hypo()

    assert len(scan_core_intervals(series, config)) == 2
    episodes = detect_episodes(series, config)

    assert _spans(episodes) == [(1, 7)]
    assert episodes[0].duration_minutes == 35.0


def test_sustained_recovery_separates_episodes():
    series = _make_series([80, 65, 60, 65, 75, 75, 75, 65, 60, 65, 80, 80, 80])

    episodes = detect_episodes(series, _hypo())

    assert _spans(episodes) == [(1, 3), (7, 9)]
    assert episodes[0].end_time < episodes[1].start_time


def test_recovery_after_gap_is_discarded_by_default():
    series = _make_series([80, 65, 60, 55, 75, 80, 80, 80], minutes=[0, 5, 10, 15, 20, 50, 55, 60])

    assert detect_episodes(series, _hypo()) == []


def test_recovery_after_gap_finalizes_at_core_end_when_configured():
    series = _make_series([80, 65, 60, 55, 75, 80, 80, 80], minutes=[0, 5, 10, 15, 20, 50, 55, 60])
    config = _hypo(recovery_fallback=RecoveryFallback.FINALIZE_AT_CORE_END)

    episodes = detect_episodes(series, config)

    assert _spans(episodes) == [(1, 3)]
    assert episodes[0].duration_minutes == 15.0


def test_data_ending_before_recovery_follows_fallback():
    series = _make_series([80, 65, 60, 55, 75])

    assert detect_episodes(series, _hypo()) == []
    finalized = detect_episodes(series, _hypo(recovery_fallback="finalize_at_core_end"))
    assert _spans(finalized) == [(1, 3)]


def test_finalized_episode_absorbs_later_core_without_recovery_between():
    series = _make_series([80, 65, 60, 65, 75, 65, 60, 65, 75])
    config = _hypo(recovery_fallback=RecoveryFallback.FINALIZE_AT_CORE_END)

    episodes = detect_episodes(series, config)

    assert _spans(episodes) == [(1, 7)]
    assert episodes[0].duration_minutes == 35.0
    assert detect_episodes(series, _hypo()) == []


def test_finalized_episode_runs_to_last_core_before_gap():
    minutes = [0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 300]
    series = _make_series([80, 60, 60, 60, 75, 60, 60, 60, 60, 75, 80], minutes=minutes)
    config = _hypo(recovery_fallback=RecoveryFallback.FINALIZE_AT_CORE_END)

    episodes = detect_episodes(series, config)

    assert _spans(episodes) == [(1, 8)]
    assert episodes[0].duration_minutes == 40.0
    assert detect_episodes(series, _hypo()) == []


def test_core_cut_by_gap_is_finalized_like_core_at_end_of_data():
    values = [80, 60, 60, 60, 60, 60, 60, 80, 80, 80]
    gapped = _make_series(values, minutes=[0, 5, 10, 15, 20, 25, 30, 270, 275, 280])
    trailing = _make_series(values[:7])
    config = _hypo(recovery_fallback=RecoveryFallback.FINALIZE_AT_CORE_END)

    episodes = detect_episodes(gapped, config)

    assert _spans(episodes) == [(1, 6)]
    assert episodes[0].duration_minutes == 35.0
    assert _spans(detect_episodes(trailing, config)) == [(1, 6)]
    assert detect_episodes(gapped, _hypo()) == []


def test_episode_end_skips_missing_reading_before_recovery():
    series = _make_series([80, 65, 60, 65, None, 80, 80, 80])

    episodes = detect_episodes(series, _hypo())

    assert _spans(episodes) == [(1, 3)]


def test_hyperglycemic_hysteresis_uses_recovery_threshold():
    config = DetectionConfig(
        entry_threshold=250,
        recovery_threshold=180,
        direction=Direction.ABOVE,
    )
    series = _make_series([200, 260, 270, 260, 200, 170, 170, 170])

    episodes = detect_episodes(series, config)

    # 200 is below the entry threshold but above recovery, so it stays in the episode.
    assert _spans(episodes) == [(1, 4)]
    assert episodes[0].end_value == 200.0
    assert episodes[0].duration_minutes == 20.0


def test_secondary_duration_counts_time_beyond_deeper_threshold():
    config = _hypo(secondary_threshold=54)
    series = _make_series([80, 65, 52, 50, 60, 80, 80, 80])

    episodes = detect_episodes(series, config)

    assert _spans(episodes) == [(1, 4)]
    assert episodes[0].secondary_duration_minutes == 10.0


def test_secondary_duration_on_last_reading_uses_next_step():
    config = _hypo(secondary_threshold=54)
    series = _make_series([80, 65, 60, 50, 80, 80, 80])

    episode = detect_episodes(series, config)[0]

    assert episode.secondary_duration_minutes == 5.0


def test_secondary_duration_is_none_without_threshold():
    series = _make_series([80, 65, 60, 50, 80, 80, 80])

    assert detect_episodes(series, _hypo())[0].secondary_duration_minutes is None


def test_build_episode_averages_present_values_only():
    series = _make_series([60, None, 50, 80])

    episode = build_episode(series, _hypo(), 0, 2)

    assert episode.average_value == 55.0
    assert episode.duration_minutes == 15.0


def test_resolve_episodes_accepts_no_cores():
    series = _make_series([80, 80])

    assert resolve_episodes(series, _hypo(), []) == []
    assert detect_episodes(_make_series([]), _hypo()) == []


def test_literal_end_to_end_series_has_too_short_recovery():
    series = _make_series([80, 75, 65, 60, 55, 60, 68, 72, 75])
    config = _hypo()

    cores = scan_core_intervals(series, config)

    assert [(core.start_index, core.end_index) for core in cores] == [(2, 6)]
    # 72 and 75 cover only ten minutes of recovery, so nothing is confirmed.
    assert detect_episodes(series, config) == []


def test_end_to_end_series_with_sustained_recovery():
    series = _make_series([80, 75, 65, 60, 55, 60, 68, 72, 75, 78, 80])

    episodes = detect_episodes(series, _hypo())

    assert _spans(episodes) == [(2, 6)]
    episode = episodes[0]
    assert episode.start_time == 600.0
    assert episode.start_value == 65.0
    assert episode.end_time == 1800.0
    assert episode.end_value == 68.0
    assert episode.duration_minutes == 25.0
    assert episode.average_value == pytest.approx((65 + 60 + 55 + 60 + 68) / 5)
