import math

from territory_engine.tracking.closure import ClosureDetector

from conftest import SQUARE_LOOP, grid_path


def test_needs_minimum_points_even_at_start():
    detector = ClosureDetector()
    path = grid_path([(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])
    assert not detector.is_closed(path)


def test_square_closes_once_back_within_threshold():
    detector = ClosureDetector()
    assert not detector.is_closed(grid_path(SQUARE_LOOP[:14]))
    assert detector.is_closed(grid_path(SQUARE_LOOP[:15]))
    assert detector.is_closed(grid_path(SQUARE_LOOP))


def test_long_open_path_is_not_closed():
    detector = ClosureDetector()
    path = grid_path([(x, 0) for x in range(12)])
    assert not detector.is_closed(path)
    assert detector.distance_to_start(path) > 100


def test_distance_to_start_undefined_for_single_point():
    assert math.isinf(ClosureDetector().distance_to_start(grid_path([(0, 0)])))


def test_custom_threshold():
    detector = ClosureDetector(threshold_m=40.0, min_points=4)
    assert detector.is_closed(grid_path([(0, 0), (1, 0), (2, 0), (3, 0)]))
