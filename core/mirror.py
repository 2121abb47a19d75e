# core/mirror.py
"""
=============================================================================
Mirror therapy: 한쪽 팔을 반대쪽으로 거울 반사
=============================================================================

sagittal plane (몸의 좌우 대칭면) 을 mirror plane 으로 사용해
한쪽 팔의 관절 위치/방향을 반대쪽으로 덮어씁니다.

mirror 대상:
- 위치/신뢰도/delta: elbow, hand
- 방향(orientation)/방향 신뢰도: shoulder, elbow, hand
- hip/knee/foot 은 mirror 하지 않음

mirror 는 JointStore.live 에만 적용되고 true_unmirrored 는 그대로 유지됨.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Optional

import numpy as np

from core.body_planes import BodyPlane
from core.joints import Joint, JointStore

logger = logging.getLogger(__name__)


class MirrorMode(Enum):
    OFF = 0
    LEFT_TO_RIGHT = 1   # 왼쪽 팔을 오른쪽으로 반사
    RIGHT_TO_LEFT = 2   # 오른쪽 팔을 왼쪽으로 반사

    @classmethod
    def coerce(cls, value) -> 'MirrorMode':
        """범위 밖 값은 OFF"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OFF


# (source, target) 쌍
_POSITION_PAIRS = {
    MirrorMode.LEFT_TO_RIGHT: (
        (Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW),
        (Joint.LEFT_HAND, Joint.RIGHT_HAND),
    ),
    MirrorMode.RIGHT_TO_LEFT: (
        (Joint.RIGHT_ELBOW, Joint.LEFT_ELBOW),
        (Joint.RIGHT_HAND, Joint.LEFT_HAND),
    ),
}

_ORIENTATION_PAIRS = {
    MirrorMode.LEFT_TO_RIGHT: (
        (Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER),
        (Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW),
        (Joint.LEFT_HAND, Joint.RIGHT_HAND),
    ),
    MirrorMode.RIGHT_TO_LEFT: (
        (Joint.RIGHT_SHOULDER, Joint.LEFT_SHOULDER),
        (Joint.RIGHT_ELBOW, Joint.LEFT_ELBOW),
        (Joint.RIGHT_HAND, Joint.LEFT_HAND),
    ),
}


def mirror_point(point: np.ndarray, plane: BodyPlane) -> np.ndarray:
    """
    점을 평면에 대해 반사

    d = p · n0 - plane.d  (평면까지 부호 있는 거리)
    p' = p - 2 · d · n0
    """
    point = np.asarray(point, dtype=float)
    dist = np.dot(point, plane.n0) - plane.d
    return point - 2.0 * dist * plane.n0


def mirror_orientation(matrix: np.ndarray, plane: BodyPlane) -> np.ndarray:
    """
    방향 행렬 (4x4, 회전 + 원점) 을 평면에 대해 반사

    동작 원리:
    1. 회전 부분의 세 열 (x, y, z 축) 을 꺼냄
    2. 각 축에 r 을 더해 평면 기준 점으로 옮긴 뒤 mirror_point 와 똑같이 반사, 다시 r 을 뺌
    3. 반사만 하면 왼손 좌표계가 되므로 X 열의 부호를 뒤집어 오른손 좌표계로 복원
    4. translation 열과 마지막 행은 원래 값 유지
    """
    matrix = np.asarray(matrix, dtype=float)
    mirrored = matrix.copy()
    for col in range(3):
        axis = matrix[:3, col] + plane.r
        axis = mirror_point(axis, plane)
        mirrored[:3, col] = axis - plane.r
    mirrored[:3, 0] = -mirrored[:3, 0]
    return mirrored


class MirrorEngine:
    """
    MirrorMode 에 따라 JointStore.live 의 한쪽 팔을 덮어쓰는 클래스

    활용:
        >>> engine = MirrorEngine(MirrorMode.LEFT_TO_RIGHT)
        >>> engine.apply(store, planes.sagittal)
    """

    def __init__(self, mode: MirrorMode = MirrorMode.OFF):
        self.mode = MirrorMode.coerce(mode)

    def apply(self, store: JointStore, plane: Optional[BodyPlane]) -> bool:
        """
        Args:
            store: 이번 프레임으로 갱신된 JointStore
            plane: 이번 프레임의 sagittal plane (계산 실패 시 None)

        Returns:
            bool: mirror 가 실제로 적용되었는지
        """
        if self.mode is MirrorMode.OFF:
            return False
        if plane is None:
            logger.debug("mirror plane not available this frame, mirroring skipped")
            return False

        # 위치 / 신뢰도 / delta
        for source, target in _POSITION_PAIRS[self.mode]:
            src = store.live[source]
            position = mirror_point(src.position, plane)
            previous = store.previous_live_position(target)
            delta = 0.0 if previous is None else float(np.linalg.norm(position - previous))
            store.set_live(target, replace(
                store.live[target],
                position=position,
                confidence=src.confidence,
                delta=delta
            ))

        # 방향 / 방향 신뢰도
        for source, target in _ORIENTATION_PAIRS[self.mode]:
            src = store.live[source]
            store.set_live(target, replace(
                store.live[target],
                orientation=mirror_orientation(src.orientation, plane),
                orientation_confidence=src.orientation_confidence
            ))

        return True
