# core/coordinate_system.py
"""
=============================================================================
Skeleton local 좌표계 구성
=============================================================================

torso / 양 어깨 global 좌표로 몸에 붙은 직교 좌표계를 만듭니다.

좌표계 정의:
- origin: torso
- +X: 왼쪽 어깨 → 오른쪽 어깨
- +Y: torso 에서 어깨선 위의 수직 발 (torso 를 어깨선에 투영한 점) 방향 = 위쪽
- +Z: X × Y  (사람 기준 뒤쪽, 앞쪽은 -Z)

local 좌표로 표현하면 센서에 대한 사람의 위치/방향과 무관하게
관절 위치를 비교할 수 있음.

활용:
>>> frame = FrameBuilder().build(torso, left_shoulder, right_shoulder)
>>> local_hand = frame.to_local(global_hand)
"""

import logging
from dataclasses import dataclass

import numpy as np

import config
from core.exceptions import DegenerateFrameError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFrame:
    """
    한 프레임의 local 좌표계

    Attributes:
        origin: (3,) torso 위치 (global)
        x_axis, y_axis, z_axis: (3,) 단위 벡터 (global 좌표로 표현)
        transform: (4, 4) local → global, 열 = [X, Y, Z, origin]
        inverse: (4, 4) global → local
    """
    origin: np.ndarray
    x_axis: np.ndarray
    y_axis: np.ndarray
    z_axis: np.ndarray
    transform: np.ndarray
    inverse: np.ndarray

    def to_local(self, point: np.ndarray) -> np.ndarray:
        """global 점 → local 점 (localPoint = inverse · globalPoint)"""
        homogeneous = np.append(np.asarray(point, dtype=float), 1.0)
        return (self.inverse @ homogeneous)[:3]

    def to_global(self, point: np.ndarray) -> np.ndarray:
        """local 점 → global 점"""
        homogeneous = np.append(np.asarray(point, dtype=float), 1.0)
        return (self.transform @ homogeneous)[:3]

    def axis(self, name: str) -> np.ndarray:
        """'x' / 'y' / 'z' 축 벡터 (global 좌표)"""
        return {'x': self.x_axis, 'y': self.y_axis, 'z': self.z_axis}[name.lower()].copy()


class FrameBuilder:
    """
    torso / 어깨 좌표로 LocalFrame 을 만드는 클래스

    degenerate 입력 (어깨 두 점이 같음, NaN/inf 포함) 이면
    NaN 축 대신 DegenerateFrameError 발생.
    torso 가 어깨선 위에 있으면 fallback_up 방향으로 Y축을 정함.
    """

    def __init__(self, epsilon: float = config.GEOMETRY_CONFIG['epsilon'],
                 fallback_up=config.GEOMETRY_CONFIG['fallback_up']):
        self.epsilon = epsilon
        self.fallback_up = np.asarray(fallback_up, dtype=float)

    def build(self, torso: np.ndarray,
              left_shoulder: np.ndarray,
              right_shoulder: np.ndarray) -> LocalFrame:
        """
        local 좌표계 계산

        Args:
            torso: (3,) torso global 좌표
            left_shoulder: (3,) 왼쪽 어깨 global 좌표
            right_shoulder: (3,) 오른쪽 어깨 global 좌표

        Returns:
            LocalFrame: 직교 정규 축 + 변환 행렬

        Raises:
            DegenerateFrameError: 축을 정규화할 수 없는 경우
        """
        origin = np.asarray(torso, dtype=float)
        left_shoulder = np.asarray(left_shoulder, dtype=float)
        right_shoulder = np.asarray(right_shoulder, dtype=float)

        if not (np.all(np.isfinite(origin)) and np.all(np.isfinite(left_shoulder))
                and np.all(np.isfinite(right_shoulder))):
            raise DegenerateFrameError("non-finite torso/shoulder coordinates")

        # STEP 1: +X = 왼쪽 어깨 → 오른쪽 어깨 (아직 정규화 안 함)
        x_axis = right_shoulder - left_shoulder
        x_dot = np.dot(x_axis, x_axis)
        if np.sqrt(x_dot) < self.epsilon:
            raise DegenerateFrameError("left and right shoulder coincide")

        # STEP 2: torso 를 어깨선 (left_shoulder + λ·X) 에 수직 투영
        # λ = ((torso - left_shoulder) · X) / (X · X)
        lam = np.dot(origin - left_shoulder, x_axis) / x_dot
        cross_point = left_shoulder + lam * x_axis

        # STEP 3: +Y = torso → 투영점
        y_axis = cross_point - origin
        if np.linalg.norm(y_axis) < self.epsilon:
            # torso 가 어깨선 위: 센서 위쪽 방향에서 X 성분을 뺀 벡터를 Y 로 사용
            logger.debug("torso lies on the shoulder line, using fallback up axis")
            y_axis = self.fallback_up - (np.dot(self.fallback_up, x_axis) / x_dot) * x_axis
            if np.linalg.norm(y_axis) < self.epsilon:
                raise DegenerateFrameError("torso lies on the shoulder line and shoulders are vertical")

        # STEP 4: +Z = X × Y
        z_axis = np.cross(x_axis, y_axis)

        # STEP 5: 정규화
        x_axis = x_axis / np.linalg.norm(x_axis)
        y_axis = y_axis / np.linalg.norm(y_axis)
        z_axis = z_axis / np.linalg.norm(z_axis)

        # STEP 6: 변환 행렬 (열 = [X, Y, Z, origin]) 과 역행렬
        transform = np.eye(4)
        transform[:3, 0] = x_axis
        transform[:3, 1] = y_axis
        transform[:3, 2] = z_axis
        transform[:3, 3] = origin
        inverse = np.linalg.inv(transform)

        return LocalFrame(
            origin=origin.copy(),
            x_axis=x_axis,
            y_axis=y_axis,
            z_axis=z_axis,
            transform=transform,
            inverse=inverse
        )
