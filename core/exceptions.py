# core/exceptions.py
"""
Skeleton 기하 계산 예외
"""


class SkeletonGeometryError(ValueError):
    """좌표계/평면 계산에 쓸 수 없는 입력 (영벡터, 일직선 등)"""


class DegenerateFrameError(SkeletonGeometryError):
    """
    local 좌표계를 만들 수 없는 프레임

    예: 왼쪽/오른쪽 어깨가 같은 위치 → X축 길이 0,
        어깨선이 수직이고 torso 가 그 위에 있음 → Y축을 정할 수 없음
    """
