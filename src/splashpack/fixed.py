"""Fixed-point conversion for the console geometry engine.

Matrix entries and angles use 4.12 fixed point (``1.0 == 4096``). Positions
are scaled so that ``gte_scaling`` world units map to ``1.0``. Every value is
clamped to the signed 16-bit range instead of wrapping.

The engine is Y-up while the console is Y-down, so the Y component of every
position, normal and Euler rotation is negated. X and Z are left untouched.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

FIXED_ONE = 4096
INT16_MIN = -0x8000
INT16_MAX = 0x7FFF

Vector3 = Tuple[float, float, float]
FixedVector = Tuple[int, int, int]
Matrix3 = List[List[float]]
FixedMatrix = List[List[int]]


def clamp_int16(value: int) -> int:
    return max(INT16_MIN, min(INT16_MAX, value))


def world_to_fixed(value: float, scale: float) -> int:
    return clamp_int16(int(round(value * scale)))


def position_to_fixed(value: float, gte_scaling: float) -> int:
    if gte_scaling <= 0:
        raise ValueError("GTE scaling must be greater than 0")
    return world_to_fixed(value, FIXED_ONE / gte_scaling)


def convert_position(position: Sequence[float], gte_scaling: float) -> FixedVector:
    x, y, z = position
    return (
        position_to_fixed(x, gte_scaling),
        position_to_fixed(-y, gte_scaling),
        position_to_fixed(z, gte_scaling),
    )


def convert_normal(normal: Sequence[float]) -> FixedVector:
    x, y, z = normal
    return (
        world_to_fixed(x, FIXED_ONE),
        world_to_fixed(-y, FIXED_ONE),
        world_to_fixed(z, FIXED_ONE),
    )


def angle_to_fixed(degrees: float) -> int:
    return world_to_fixed(math.radians(degrees), FIXED_ONE)


def convert_euler(rotation: Sequence[float], mirror_y: bool = True) -> FixedVector:
    """Euler angles in degrees to fixed-point radians.

    Y is negated unless ``mirror_y`` is false; the player spawn heading is
    stored as authored.
    """
    x, y, z = rotation
    return (angle_to_fixed(x), angle_to_fixed(-y if mirror_y else y), angle_to_fixed(z))


def _matmul(a: Matrix3, b: Matrix3) -> Matrix3:
    return [[sum(a[i][k] * b[k][j] for k in range(3)) for j in range(3)] for i in range(3)]


def rotation_matrix(rotation: Sequence[float]) -> Matrix3:
    """Float rotation matrix for engine Euler angles (degrees).

    The engine applies Z, then X, then Y, giving ``Ry * Rx * Rz``. The Y
    angle is negated before the matrix is built.
    """
    rx, ry, rz = (math.radians(a) for a in rotation)
    ry = -ry
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    mx = [[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]]
    my = [[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]]
    mz = [[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]]
    return _matmul(_matmul(my, mx), mz)


def rotation_to_fixed_matrix(rotation: Sequence[float]) -> FixedMatrix:
    return [[world_to_fixed(value, FIXED_ONE) for value in row] for row in rotation_matrix(rotation)]
