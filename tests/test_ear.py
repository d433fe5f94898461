from types import SimpleNamespace

import pytest

from drowsiness_model import EyeLandmarks, average_ear, eye_aspect_ratio


def _eye(width=1.0, opening=0.3, x0=0.0, y0=0.0):
    """p1..p6 for an eye of the given width and lid separation"""
    half = opening / 2
    return [
        (x0, y0),
        (x0 + width / 3, y0 - half),
        (x0 + 2 * width / 3, y0 - half),
        (x0 + width, y0),
        (x0 + 2 * width / 3, y0 + half),
        (x0 + width / 3, y0 + half),
    ]


def _face(left, right, size=478):
    landmarks = [SimpleNamespace(x=0.0, y=0.0) for _ in range(size)]
    for indices, points in ((EyeLandmarks.LEFT_EYE_INDICES, left),
                            (EyeLandmarks.RIGHT_EYE_INDICES, right)):
        for idx, (x, y) in zip(indices, points):
            landmarks[idx] = SimpleNamespace(x=x, y=y)
    return landmarks


def test_eye_aspect_ratio():
    assert eye_aspect_ratio(_eye(width=1.0, opening=0.3)) == pytest.approx(0.3)
    assert eye_aspect_ratio(_eye(width=0.05, opening=0.01)) == pytest.approx(0.2)


def test_eye_aspect_ratio_invalid():
    assert eye_aspect_ratio(_eye()[:5]) is None
    assert eye_aspect_ratio([(0.5, 0.5)] * 6) is None


def test_average_ear_over_both_eyes():
    face = _face(_eye(width=0.1, opening=0.03), _eye(width=0.1, opening=0.01, x0=0.5))
    assert average_ear(face) == pytest.approx((0.3 + 0.1) / 2)


def test_average_ear_invalid_eye():
    face = _face(_eye(), [(0.2, 0.2)] * 6)
    assert average_ear(face) is None


def test_average_ear_short_landmark_list():
    assert average_ear([SimpleNamespace(x=0.0, y=0.0)] * 100) is None
