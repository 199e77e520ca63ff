import math

import pytest

from splashpack.fixed import (
    angle_to_fixed,
    convert_euler,
    convert_normal,
    convert_position,
    position_to_fixed,
    rotation_to_fixed_matrix,
    world_to_fixed,
)

IDENTITY = [[4096, 0, 0], [0, 4096, 0], [0, 0, 4096]]


def test_world_to_fixed_one() -> None:
    assert world_to_fixed(1.0, 4096) == 4096
    assert world_to_fixed(-0.5, 4096) == -2048


def test_world_to_fixed_clamps_instead_of_wrapping() -> None:
    assert world_to_fixed(10.0, 10000) == 32767
    assert world_to_fixed(-10.0, 10000) == -32768


def test_position_scale_uses_gte_scaling() -> None:
    assert position_to_fixed(100.0, 100.0) == 4096
    assert position_to_fixed(-1.0, 100.0) == -41
    with pytest.raises(ValueError):
        position_to_fixed(1.0, 0.0)


def test_y_axis_is_negated() -> None:
    assert convert_position((1.0, 2.0, 3.0), 1.0) == (4096, -8192, 12288)
    assert convert_normal((0.0, 1.0, 0.0)) == (0, -4096, 0)
    assert convert_euler((0.0, 90.0, 0.0)) == (0, -6434, 0)
    assert convert_euler((0.0, 90.0, 0.0), mirror_y=False) == (0, 6434, 0)


def test_angle_to_fixed_uses_radians() -> None:
    assert angle_to_fixed(180.0) == round(math.pi * 4096)


def test_identity_rotation() -> None:
    assert rotation_to_fixed_matrix((0.0, 0.0, 0.0)) == IDENTITY


def test_yaw_is_mirrored() -> None:
    # +90 degrees of engine yaw becomes -90 degrees on the console
    assert rotation_to_fixed_matrix((0.0, 90.0, 0.0)) == [
        [0, 0, -4096],
        [0, 4096, 0],
        [4096, 0, 0],
    ]


def test_roll_is_not_mirrored() -> None:
    assert rotation_to_fixed_matrix((0.0, 0.0, 90.0)) == [
        [0, -4096, 0],
        [4096, 0, 0],
        [0, 0, 4096],
    ]
