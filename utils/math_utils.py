# utils/math_utils.py
"""
=============================================================================
수학 유틸리티 함수들
=============================================================================

이 모듈은 3D 공간에서의 각도/벡터 계산을 위한 핵심 함수들을 제공합니다.
skeleton 의 local 좌표계, body plane, posture/gesture 판정에서 공통으로 사용:
1. 두 벡터 사이의 각도 계산 (degrees)
2. 값이 허용 범위 안에 있는지 검사 (tolerance 판정)
3. 평면으로의 투영 (좌표 성분 제거)

사용 예시:
    >>> angle_between_vectors(UNIT_X, UNIT_Y)  # 90.0
    >>> is_value_between(angle, 85, 95)  # True
"""

import numpy as np


# local 좌표계 단위 벡터 (local 좌표에서 축은 항상 이 값)
UNIT_X = np.array([1.0, 0.0, 0.0])
UNIT_Y = np.array([0.0, 1.0, 0.0])
UNIT_Z = np.array([0.0, 0.0, 1.0])
for _axis in (UNIT_X, UNIT_Y, UNIT_Z):
    _axis.setflags(write=False)


def angle_between_vectors(v1: np.ndarray, v2: np.ndarray) -> float:
    """
    두 벡터 사이의 각도 계산 (atan2 사용)

    동작 원리:
    1. 두 벡터 중 하나라도 길이가 0이면 0도 반환
    2. |v1 × v2| = |v1||v2|sin(θ), v1 · v2 = |v1||v2|cos(θ)
    3. atan2(sin, cos) 로 라디안 각도 계산 후 degree 로 변환
       (arccos 와 달리 0도, 180도 근처에서도 정밀도 손실 없음)

    Args:
        v1: 벡터 1 (3D numpy array, 예: [x, y, z])
        v2: 벡터 2 (3D numpy array)

    Returns:
        float: 두 벡터 사이의 각도 (degrees, 0~180도)

    예시:
        >>> v1 = np.array([1, 0, 0])  # X축 방향
        >>> v2 = np.array([0, 1, 0])  # Y축 방향
        >>> angle_between_vectors(v1, v2)  # 90.0
    """
    v1 = np.asarray(v1, dtype=float)
    v2 = np.asarray(v2, dtype=float)

    # STEP 1: 영벡터 처리 (방향이 정의되지 않음 → 0도)
    if np.linalg.norm(v1) == 0.0 or np.linalg.norm(v2) == 0.0:
        return 0.0

    # STEP 2: sin / cos 성분
    sin_part = np.linalg.norm(np.cross(v1, v2))
    cos_part = np.dot(v1, v2)

    # STEP 3: 라디안 → degree
    return float(np.degrees(np.arctan2(sin_part, cos_part)))


def is_value_between(value: float, lower: float, upper: float) -> bool:
    """
    값이 [lower, upper] 구간 안에 있는지 검사 (양 끝 포함)

    posture/gesture 의 모든 각도 판정은 이 함수로 이루어짐.
    """
    return lower <= value <= upper


def project_onto_plane(vector: np.ndarray, drop_axis: int) -> np.ndarray:
    """
    local 좌표 벡터를 축 하나를 0으로 만들어 평면에 투영

    local 좌표계에서 body plane 은 축 평면과 같으므로
    (frontal = x-y 평면, sagittal = y-z 평면) 성분 하나만 지우면 됨.

    Args:
        vector: local 좌표의 3D 벡터
        drop_axis: 0 (x 제거, sagittal 투영), 1 (y 제거), 2 (z 제거, frontal 투영)

    Returns:
        np.ndarray: 투영된 벡터 (새 배열)
    """
    projected = np.array(vector, dtype=float)
    projected[drop_axis] = 0.0
    return projected


def distance(p1: np.ndarray, p2: np.ndarray) -> float:
    """두 점 사이의 유클리드 거리"""
    return float(np.linalg.norm(np.asarray(p1, dtype=float) - np.asarray(p2, dtype=float)))
