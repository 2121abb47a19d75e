# core/body_planes.py
"""
해부학적 기준 평면 (Hesse Normal Form)

HNF: r · n0 - d = 0
- sagittal (시상면): n0 = local X → mirror plane 으로도 사용
- frontal (관상면): n0 = local Z
- transversal (횡단면): n0 = local Y
세 평면 모두 r = torso (local 좌표계 원점)
"""

from dataclasses import dataclass

import numpy as np

from core.coordinate_system import LocalFrame


@dataclass(frozen=True)
class BodyPlane:
    """Hesse Normal Form 평면 (n0: 단위 법선, d: 원점 거리, r: 평면 위 한 점)"""
    n0: np.ndarray
    d: float
    r: np.ndarray

    @classmethod
    def from_point_normal(cls, r: np.ndarray, n0: np.ndarray) -> 'BodyPlane':
        r = np.asarray(r, dtype=float).copy()
        n0 = np.asarray(n0, dtype=float).copy()
        return cls(n0=n0, d=float(np.dot(r, n0)), r=r)

    def signed_distance(self, point: np.ndarray) -> float:
        """점의 평면까지 부호 있는 거리 (p · n0 - d)"""
        return float(np.dot(np.asarray(point, dtype=float), self.n0) - self.d)

    def side_of(self, point: np.ndarray, epsilon: float = 0.0) -> int:
        """평면 기준 어느 쪽인지: +1 (법선 방향), -1 (반대), 0 (평면 위)"""
        dist = self.signed_distance(point)
        if dist > epsilon:
            return 1
        if dist < -epsilon:
            return -1
        return 0


@dataclass(frozen=True)
class BodyPlanes:
    sagittal: BodyPlane
    frontal: BodyPlane
    transversal: BodyPlane

    @property
    def mirror_plane(self) -> BodyPlane:
        return self.sagittal


class BodyPlaneEngine:
    """local 좌표계에서 세 기준 평면을 계산"""

    @staticmethod
    def calculate(frame: LocalFrame) -> BodyPlanes:
        """
        Args:
            frame: 이번 프레임의 LocalFrame

        Returns:
            BodyPlanes: sagittal / frontal / transversal
        """
        return BodyPlanes(
            sagittal=BodyPlane.from_point_normal(frame.origin, frame.x_axis),
            frontal=BodyPlane.from_point_normal(frame.origin, frame.z_axis),
            transversal=BodyPlane.from_point_normal(frame.origin, frame.y_axis)
        )
