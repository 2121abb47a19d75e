# analysis/gesture_recognizer.py
"""
=============================================================================
Push gesture 인식 (프레임 윈도우 상태 머신)
=============================================================================

push gesture = 두 손을 어깨 근처에서 몸 앞쪽(-Z)으로 곧게 뻗는 동작

상태:
- IDLE: 시작 자세를 기다림 (window start = None)
- WINDOWED: 시작 자세를 본 뒤 push_gesture_max_frames 동안 끝 자세를 기다림

매 프레임 판정:
1. (어깨 - 손) 벡터 두 개가 local +Z 와 나란한가?
   - 아니면 → IDLE (움직임은 항상 z 축과 나란해야 함)
2. 손-어깨 거리가 가까우면 시작 자세 → window start 갱신, WINDOWED
3. window 안 (frame - start ≤ max_frames) 이면 끝 자세 검사
   - 팔이 곧게 펴짐 + 윗팔이 -Z 방향 → PUSH 발생
   - window 밖이면 → IDLE
"""

import logging
from enum import Enum, IntEnum
from typing import Optional, Tuple

import numpy as np

import config
from analysis.posture_classifier import ArmVectors
from utils.math_utils import UNIT_Z, angle_between_vectors, is_value_between

logger = logging.getLogger(__name__)


class GestureKind(IntEnum):
    NONE = 0
    PUSH = 1


class GestureState(Enum):
    IDLE = 'idle'
    WINDOWED = 'windowed'


class GestureRecognizer:
    """
    push gesture 인식기

    활용:
        >>> recognizer = GestureRecognizer()
        >>> recognizer.evaluate(arms, frame_index)
        >>> recognizer.last_gesture(lookback=10, current_frame=frame_index)
        <GestureKind.PUSH: 1>
    """

    DEFAULT_TOLERANCE = config.GESTURE_CONFIG['tolerance']

    def __init__(self,
                 tolerance: float = config.GESTURE_CONFIG['tolerance'],
                 reference_angle: float = config.GESTURE_CONFIG['reference_angle'],
                 max_frames: int = config.GESTURE_CONFIG['push_gesture_max_frames'],
                 hand_shoulder_distance: float = config.GESTURE_CONFIG['hand_shoulder_distance']):
        self.reference_angle = reference_angle
        self.max_frames = max_frames
        self.hand_shoulder_distance = hand_shoulder_distance
        self._tolerance = self.DEFAULT_TOLERANCE
        self.tolerance = tolerance

        self.window_start: Optional[int] = None
        self.last_fired: Optional[int] = None
        self.current_gesture = GestureKind.NONE

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: float) -> None:
        if value is not None and 0.0 <= value <= 1.0:
            self._tolerance = float(value)
        else:
            logger.debug("gesture tolerance %r out of range, using default %s", value, self.DEFAULT_TOLERANCE)
            self._tolerance = self.DEFAULT_TOLERANCE

    @property
    def tolerance_angle(self) -> float:
        return self._tolerance * self.reference_angle

    @property
    def state(self) -> GestureState:
        return GestureState.IDLE if self.window_start is None else GestureState.WINDOWED

    def reset(self) -> None:
        self.window_start = None
        self.last_fired = None
        self.current_gesture = GestureKind.NONE

    def checkpoint(self) -> Tuple[Optional[int], Optional[int], GestureKind]:
        """현재 window / 마지막 인식 상태 (restore() 로 되돌릴 수 있음)"""
        return self.window_start, self.last_fired, self.current_gesture

    def restore(self, checkpoint: Tuple[Optional[int], Optional[int], GestureKind]) -> None:
        self.window_start, self.last_fired, self.current_gesture = checkpoint

    def evaluate(self, arms: ArmVectors, frame_index: int) -> bool:
        """
        한 프레임 판정

        Args:
            arms: 이번 프레임의 local 팔 벡터
            frame_index: 호출자가 넘긴 프레임 번호

        Returns:
            bool: 이번 프레임에 PUSH 가 발생했는지
        """
        t = self.tolerance_angle
        left_reach = arms.left_shoulder_to_hand
        right_reach = arms.right_shoulder_to_hand

        # STEP 1: 손→어깨 벡터가 z 축과 나란한지
        left_to_z = angle_between_vectors(left_reach, UNIT_Z)
        right_to_z = angle_between_vectors(right_reach, UNIT_Z)
        if not (is_value_between(left_to_z, 0, 30 + t) and is_value_between(right_to_z, 0, 30 + t)):
            self.window_start = None
            return False

        # STEP 2: 시작 자세 (손이 어깨 근처)
        start_distance = self.hand_shoulder_distance + self.hand_shoulder_distance * self._tolerance
        if np.linalg.norm(left_reach) <= start_distance and np.linalg.norm(right_reach) <= start_distance:
            self.window_start = frame_index

        if self.window_start is None:
            return False

        # STEP 3: window 안에서 끝 자세 검사
        if frame_index - self.window_start > self.max_frames:
            self.window_start = None
            return False

        straight = (is_value_between(arms.left_elbow_angle, 0, 30 + t)
                    and is_value_between(arms.right_elbow_angle, 0, 30 + t))
        if not straight:
            return False

        forward = (is_value_between(angle_between_vectors(arms.left_upper, UNIT_Z), 150 - t, 180)
                   and is_value_between(angle_between_vectors(arms.right_upper, UNIT_Z), 150 - t, 180))
        if not forward:
            return False

        self.current_gesture = GestureKind.PUSH
        self.last_fired = frame_index
        logger.debug("push gesture recognized at frame %d (window start %d)", frame_index, self.window_start)
        return True

    def last_gesture(self, lookback: int, current_frame: int) -> GestureKind:
        """
        최근 lookback 프레임 안에 인식된 gesture

        Returns:
            GestureKind: last_fired ≥ current_frame - lookback 이면 마지막 gesture, 아니면 NONE
        """
        if lookback is None or lookback < 0 or self.last_fired is None:
            return GestureKind.NONE
        if self.last_fired >= current_frame - lookback:
            return self.current_gesture
        return GestureKind.NONE
