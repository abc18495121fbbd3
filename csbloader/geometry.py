# Credits: Nightfire Research Team - 2024

import math
from dataclasses import dataclass

import numpy


def to_float32(value) -> float:
    """Rounds a Python float to the nearest value a CSB file can hold"""
    return float(numpy.float32(value))


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    def __post_init__(self):
        # Everything in a CSB is single precision, so keep the model in sync with what gets written
        object.__setattr__(self, "x", to_float32(self.x))
        object.__setattr__(self, "y", to_float32(self.y))
        object.__setattr__(self, "z", to_float32(self.z))

    def __iter__(self):
        return iter((self.x, self.y, self.z))

    def __getitem__(self, i):
        return (self.x, self.y, self.z)[i]

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3.from_array(self.as_array() - other.as_array())

    def __str__(self):
        return f"({self.x}, {self.y}, {self.z})"

    def as_array(self) -> numpy.ndarray:
        return numpy.array([self.x, self.y, self.z], dtype=numpy.float32)

    def cross(self, other: "Vector3") -> "Vector3":
        return Vector3.from_array(numpy.cross(self.as_array(), other.as_array()))

    def length(self) -> float:
        return float(numpy.linalg.norm(self.as_array()))

    def normalized(self) -> "Vector3":
        length = self.length()
        if length == 0:
            return Vector3.ZERO
        return Vector3.from_array(self.as_array() / numpy.float32(length))

    def is_positive_zero(self) -> bool:
        # -0.0 compares equal to 0.0 but would be written back differently
        return all(c == 0 and math.copysign(1.0, c) > 0 for c in self)

    @staticmethod
    def from_array(array) -> "Vector3":
        return Vector3(float(array[0]), float(array[1]), float(array[2]))


Vector3.ZERO = Vector3(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class BoundingBox:
    low: Vector3
    high: Vector3

    def __str__(self):
        return f"BoundingBox({self.low} -> {self.high})"

    def check_bounds(self, vertices: list[Vector3]) -> "BoundingBox | None":
        """
        Verifies the box against the vertices it is meant to enclose.
        Returns None if it is correct, otherwise the box it should have been.
        An empty vertex list has nothing to check against.
        """
        expected = BoundingBox.from_vertices(vertices)

        if expected is None or expected == self:
            return None

        return expected

    @staticmethod
    def from_vertices(vertices: list[Vector3]) -> "BoundingBox | None":
        if len(vertices) == 0:
            return None

        points = numpy.array([tuple(v) for v in vertices], dtype=numpy.float32)

        # -0.0 and 0.0 tie, the first vertex holding the extreme wins so the box re-encodes the same way
        axes = numpy.arange(3)
        low = points[numpy.argmax(points == points.min(axis=0), axis=0), axes]
        high = points[numpy.argmax(points == points.max(axis=0), axis=0), axes]

        return BoundingBox(Vector3.from_array(low), Vector3.from_array(high))


BoundingBox.EMPTY = BoundingBox(Vector3.ZERO, Vector3.ZERO)
