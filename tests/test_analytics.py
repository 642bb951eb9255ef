"""
Unit tests for shot analytics.

Tests player rates, shot type counts, error heatmaps, the rear-zone
cross rate and the leaderboard.
"""
import math

import pytest

from analytics import (
    build_leaderboard,
    compute_player_analytics,
    compute_player_stats,
    compute_rear_cross_rate,
    compute_shot_type_distribution,
    filter_match_shots,
    generate_error_heatmap,
    is_rear_cross,
)
from schemas import COURT_ZONES


class TestPlayerStats:

    def test_two_rear_shots(self, make_shot):
        shots = [
            make_shot(hit_player="1", hit_area="LR", receive_area="RF", is_cross=True, result="point"),
            make_shot(hit_player="1", hit_area="LR", receive_area="LF", is_cross=False, result="error"),
        ]

        stats = compute_player_stats("1", shots)

        assert stats.total_shots == 2
        assert stats.cross_rate == 50.0
        assert stats.miss_rate == 0.0
        assert stats.point_rate == 50.0
        assert stats.rear_rate == 100.0
        assert stats.mid_rate == 0.0
        assert stats.front_rate == 0.0

    def test_no_shots_gives_zero_rates(self, make_shot):
        shots = [make_shot(hit_player="2", result="miss")]

        stats = compute_player_stats("1", shots)

        assert stats.total_shots == 0
        for rate in (stats.cross_rate, stats.miss_rate, stats.point_rate,
                     stats.rear_rate, stats.mid_rate, stats.front_rate):
            assert rate == 0.0
            assert not math.isnan(rate)

    def test_empty_collection(self):
        stats = compute_player_stats("1", [])
        assert stats.total_shots == 0
        assert stats.point_rate == 0.0

    def test_only_hit_player_counts(self, make_shot):
        shots = [
            make_shot(hit_player="1", receive_player="2", result="miss"),
            make_shot(hit_player="2", receive_player="1", result="point"),
        ]

        stats = compute_player_stats("1", shots)

        assert stats.total_shots == 1
        assert stats.miss_rate == 100.0
        assert stats.point_rate == 0.0

    def test_zone_rates_partition_all_shots(self, make_shot):
        areas = ["LR", "CR", "RM", "CM", "LF", "CF", "RF"]
        shots = [make_shot(hit_area=area) for area in areas]

        stats = compute_player_stats("1", shots)

        assert stats.rear_rate + stats.mid_rate + stats.front_rate == pytest.approx(100.0)
        assert stats.rear_rate == pytest.approx(200 / 7)
        assert stats.mid_rate == pytest.approx(200 / 7)
        assert stats.front_rate == pytest.approx(300 / 7)

    def test_rates_are_independent(self, make_shot):
        shots = [
            make_shot(is_cross=True, result="miss"),
            make_shot(is_cross=True, result="point"),
            make_shot(is_cross=True, result="continue"),
        ]

        stats = compute_player_stats("1", shots)

        assert stats.cross_rate == 100.0
        assert stats.miss_rate == pytest.approx(100 / 3)
        assert stats.point_rate == pytest.approx(100 / 3)

    def test_serialises_by_alias(self, make_shot):
        data = compute_player_stats("1", [make_shot()]).to_document()
        assert set(data) == {
            "totalShots", "crossRate", "missRate", "pointRate",
            "rearRate", "midRate", "frontRate",
        }


class TestShotTypeDistribution:

    def test_counts_each_type(self, make_shot):
        shots = [
            make_shot(shot_type="smash"),
            make_shot(shot_type="smash"),
            make_shot(shot_type="drop"),
            make_shot(shot_type="hairpin", hit_player="2"),
        ]

        assert compute_shot_type_distribution("1", shots) == {"smash": 2, "drop": 1}

    def test_unused_types_omitted(self, make_shot):
        distribution = compute_shot_type_distribution("1", [make_shot(shot_type="lob")])
        assert "clear" not in distribution
        assert 0 not in distribution.values()

    def test_no_shots(self):
        assert compute_shot_type_distribution("1", []) == {}


class TestErrorHeatmap:

    def test_always_nine_zones_in_order(self, make_shot):
        heatmap = generate_error_heatmap("1", [make_shot(hit_area="CF", result="error")])
        assert [cell.area for cell in heatmap] == list(COURT_ZONES)
        assert [cell.area for cell in heatmap] == [
            "LR", "CR", "RR", "LM", "CM", "RM", "LF", "CF", "RF",
        ]

    def test_intensity_relative_to_worst_zone(self, make_shot):
        shots = [
            make_shot(hit_area="LR", result="error"),
            make_shot(hit_area="LR", result="error"),
            make_shot(hit_area="LR", result="error"),
            make_shot(hit_area="LR", result="error"),
            make_shot(hit_area="CF", result="error"),
            make_shot(hit_area="CF", result="miss"),
            make_shot(hit_area="RM", result="error", hit_player="2"),
        ]

        cells = {cell.area: cell for cell in generate_error_heatmap("1", shots)}

        assert cells["LR"].error_count == 4
        assert cells["LR"].intensity == 100.0
        assert cells["CF"].error_count == 1
        assert cells["CF"].intensity == 25.0
        assert cells["RM"].error_count == 0
        assert cells["RM"].intensity == 0.0

    def test_no_errors_gives_all_zero(self, make_shot):
        shots = [make_shot(result="miss"), make_shot(result="point")]

        heatmap = generate_error_heatmap("1", shots)

        assert len(heatmap) == 9
        assert all(cell.error_count == 0 for cell in heatmap)
        assert all(cell.intensity == 0 for cell in heatmap)

    def test_unknown_player(self):
        heatmap = generate_error_heatmap("nobody", [])
        assert len(heatmap) == 9
        assert all(cell.intensity == 0 for cell in heatmap)


class TestRearCrossRate:

    @pytest.mark.parametrize("hit_area,receive_area,expected", [
        ("LR", "RF", True),
        ("LR", "RM", True),
        ("LR", "RR", False),
        ("LR", "LF", False),
        ("RR", "LF", True),
        ("RR", "LM", True),
        ("RR", "RF", False),
        ("CR", "LF", False),
        ("CR", "RF", False),
        ("LM", "RF", False),
    ])
    def test_geometric_rule(self, make_shot, hit_area, receive_area, expected):
        assert is_rear_cross(make_shot(hit_area=hit_area, receive_area=receive_area)) is expected

    def test_denominator_is_rear_shots(self, make_shot):
        shots = [
            make_shot(hit_area="LR", receive_area="RF"),
            make_shot(hit_area="RR", receive_area="RR"),
            make_shot(hit_area="CR", receive_area="LF"),
            make_shot(hit_area="CR", receive_area="RF"),
            make_shot(hit_area="LF", receive_area="RR"),
            make_shot(hit_area="CM", receive_area="LF"),
        ]

        assert compute_rear_cross_rate("1", shots) == 25.0

    def test_ignores_is_cross_flag(self, make_shot):
        shots = [make_shot(hit_area="CR", receive_area="LF", is_cross=True)]
        assert compute_rear_cross_rate("1", shots) == 0.0
        assert compute_player_stats("1", shots).cross_rate == 100.0

    def test_no_rear_shots(self, make_shot):
        assert compute_rear_cross_rate("1", [make_shot(hit_area="CF")]) == 0.0


class TestPlayerAnalytics:

    def test_bundles_all_views(self, make_shot):
        shots = [
            make_shot(hit_area="LR", receive_area="RM", shot_type="smash", result="point"),
            make_shot(hit_area="CF", shot_type="hairpin", result="error"),
        ]

        result = compute_player_analytics("1", shots)

        assert result.player_id == "1"
        assert result.stats.total_shots == 2
        assert result.shot_distribution == {"smash": 1, "hairpin": 1}
        assert len(result.heatmap) == 9
        assert result.rear_cross_rate == 100.0

    def test_filter_match_shots_keeps_order(self, make_shot):
        shots = [
            make_shot(match_id="m1"),
            make_shot(match_id="m2"),
            make_shot(match_id="m1"),
        ]
        assert [s.id for s in filter_match_shots("m1", shots)] == ["s1", "s3"]


class TestLeaderboard:

    def test_ranked_by_points_then_miss_rate(self, players, make_shot):
        shots = [
            make_shot(hit_player="1", result="point"),
            make_shot(hit_player="1", result="miss"),
            make_shot(hit_player="2", result="point"),
            make_shot(hit_player="2", result="continue"),
            make_shot(hit_player="3", result="point"),
            make_shot(hit_player="3", result="point"),
        ]

        board = build_leaderboard(players, shots)

        assert [e.player_id for e in board] == ["3", "2", "1", "4"]
        assert board[0].points == 2
        assert board[0].point_rate == 100.0
        assert board[-1].total_shots == 0

    def test_limit(self, players):
        assert len(build_leaderboard(players, [], limit=2)) == 2

    def test_negative_limit_gives_empty_board(self, players):
        assert build_leaderboard(players, [], limit=-1) == []
