import numpy as np
import pytest

from echovision.core.depth import DistanceEstimator, relative_depth_to_feet

from conftest import box_at, det


@pytest.mark.parametrize(
    "closeness, feet",
    [(0.0, 13.0), (0.5, 6.5), (1.0, 1.0), (0.95, 1.0), (-1.0, 13.0)],
)
def test_relative_depth_to_feet(closeness, feet):
    assert relative_depth_to_feet(closeness) == pytest.approx(feet)


def test_distance_uses_median_inside_box():
    depth = np.zeros((100, 100), dtype=np.float32)
    depth[:, 40:60] = 0.5
    assert DistanceEstimator.distance_for(depth, det("chair", center_x=0.5)) == 6.5
    assert DistanceEstimator.distance_for(depth, det("my_keys")) is None


def test_annotate_skips_model_when_nothing_is_boxed(frame):
    estimator = DistanceEstimator()
    detections = [det("my_keys")]
    # No box means the depth model is never loaded
    assert estimator.annotate(frame, detections) == detections
    assert estimator.model is None


def test_annotate_attaches_distances(frame, monkeypatch):
    estimator = DistanceEstimator()
    monkeypatch.setattr(estimator, "compute_depth", lambda f: np.full(f.shape[:2], 0.5))
    annotated = estimator.annotate(frame, [det("chair", center_x=0.5), det("my_keys")])
    assert [d.distance for d in annotated] == [6.5, None]
    assert annotated[0].bounding_box == box_at(0.5)
