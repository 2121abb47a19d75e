# analysis/statistics_tracker.py
"""
=============================================================================
운동 통계 (Statistics) 누적
=============================================================================

치료 세션 동안 손/팔꿈치의 움직임을 누적 기록합니다.
항상 mirror 되지 않은 실제 관절 (true_unmirrored) 을 사용.

추적 관절: LeftHand, LeftElbow, RightHand, RightElbow

매 프레임:
1. distance += delta (누적 이동 거리, mm)
2. velocity = delta × frame rate (mm/s)
3. direction = 현재 local 위치 - 직전 local 위치
   직전 direction 과의 각도 < 90도 → constant movement counter +1, 아니면 0
4. 최대 각도 갱신 (lower arm flex, 180 - upper arm 각도, 임상 각도)
5. local 위치를 history 에 추가

history 는 deque(maxlen=history_size), None 이면 무제한.
snapshot() 은 tracker 와 참조를 공유하지 않는 깊은 복사본.
"""

import copy
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Tuple

import numpy as np

import config
from analysis.posture_classifier import ArmVectors, ClinicalAngleKind, ClinicalAngles
from core.joints import Joint, JointStore
from utils.math_utils import UNIT_Y, angle_between_vectors

TRACKED_JOINTS = (Joint.LEFT_HAND, Joint.LEFT_ELBOW, Joint.RIGHT_HAND, Joint.RIGHT_ELBOW)

# 로그 컬럼 약어 (LH, LE, RH, RE)
JOINT_ABBREVIATIONS = {
    Joint.LEFT_HAND: 'LH',
    Joint.LEFT_ELBOW: 'LE',
    Joint.RIGHT_HAND: 'RH',
    Joint.RIGHT_ELBOW: 'RE',
}

FRAME_COLUMNS = (
    ['Second']
    + [f'velocity{JOINT_ABBREVIATIONS[j]}' for j in TRACKED_JOINTS]
    + [f'delta{JOINT_ABBREVIATIONS[j]}' for j in TRACKED_JOINTS]
    + [f'{axis}{JOINT_ABBREVIATIONS[j]}' for j in TRACKED_JOINTS for axis in 'xyz']
)

SUMMARY_COLUMNS = (
    ['time']
    + [f'distance{JOINT_ABBREVIATIONS[j]}' for j in TRACKED_JOINTS]
    + ['maxAngleLeftLowerArm', 'maxAngleLeftUpperArm',
       'maxAngleRightLowerArm', 'maxAngleRightUpperArm']
)

ARM_LIMBS = ('LeftUpperArm', 'RightUpperArm')


def clinical_max_key(kind: ClinicalAngleKind, limb: str) -> str:
    """예: (ABDUCTION, 'LeftUpperArm') → 'maxAbductionLeftUpperArm'"""
    return f'max{kind.value.capitalize()}{limb}'


@dataclass
class LimbStatistics:
    """관절 하나의 누적 통계"""
    distance: float = 0.0
    velocity: float = 0.0
    delta: float = 0.0
    direction: np.ndarray = field(default_factory=lambda: np.zeros(3))
    constant_movement_counter: int = 0
    history: Deque[np.ndarray] = field(default_factory=deque)

    @property
    def last_position(self) -> Optional[np.ndarray]:
        return self.history[-1] if self.history else None


@dataclass(frozen=True)
class LimbSnapshot:
    distance: float
    velocity: float
    delta: float
    direction: np.ndarray
    constant_movement_counter: int
    history: Tuple[np.ndarray, ...]


@dataclass(frozen=True)
class StatisticsSnapshot:
    """
    StatisticsTracker 의 고정 복사본

    tracking 이 끝난 뒤에도 안전하게 읽을 수 있음 (tracker 와 공유하는 배열 없음).
    """
    seconds: float
    frame_count: int
    limbs: Dict[Joint, LimbSnapshot]
    max_angle_left_lower_arm: float
    max_angle_left_upper_arm: float
    max_angle_right_lower_arm: float
    max_angle_right_upper_arm: float
    max_clinical_angles: Dict[str, float]

    def limb(self, joint: Joint) -> LimbSnapshot:
        return self.limbs[joint]


class StatisticsTracker:
    """
    손/팔꿈치 운동 통계 누적기

    활용:
        >>> tracker = StatisticsTracker()
        >>> tracker.update(store, frame_index=0, frame_rate=30.0)
        >>> tracker.limb(Joint.LEFT_HAND).distance
        >>> snapshot = tracker.snapshot()
    """

    def __init__(self, history_size: Optional[int] = config.STATISTICS_CONFIG['history_size']):
        if history_size is not None and history_size <= 0:
            raise ValueError(f"history_size must be positive or None, got {history_size}")
        self.history_size = history_size
        self.reset()

    def reset(self) -> None:
        self.limbs: Dict[Joint, LimbStatistics] = {
            joint: LimbStatistics(history=deque(maxlen=self.history_size)) for joint in TRACKED_JOINTS
        }
        self.seconds = 0.0
        self.frame_count = 0
        self.last_frame_index: Optional[int] = None

        self.max_angle_left_lower_arm = 0.0
        self.max_angle_left_upper_arm = 0.0
        self.max_angle_right_lower_arm = 0.0
        self.max_angle_right_upper_arm = 0.0
        self.max_clinical_angles: Dict[str, float] = OrderedDict(
            (clinical_max_key(kind, limb), 0.0) for limb in ARM_LIMBS for kind in ClinicalAngleKind
        )

    def limb(self, joint: Joint) -> LimbStatistics:
        return self.limbs[joint]

    def update(self, store: JointStore, frame_index: int, frame_rate: float) -> None:
        """
        한 프레임의 통계 갱신 (store.true_unmirrored / store.true_local 사용)

        모든 값을 먼저 계산한 뒤 마지막에 한 번에 반영하므로,
        계산 중 예외가 나면 tracker 는 이전 프레임 상태 그대로 남음.

        Args:
            store: 이번 프레임으로 갱신된 JointStore
            frame_index: 현재 프레임 번호
            frame_rate: 초당 프레임 수 (0 이하면 시간/속도에 기여하지 않음)
        """
        # STEP 1: 관절별 거리/속도/방향 계산
        pending = []
        for joint, limb in self.limbs.items():
            position = store.local_position(joint, unmirrored=True)
            delta = store.sample(joint, unmirrored=True).delta
            if not (np.isfinite(delta) and np.all(np.isfinite(position))):
                # NaN 이 누적값에 섞이면 다시 회복되지 않음
                position = limb.last_position if limb.last_position is not None else np.zeros(3)
                delta = 0.0

            direction = limb.direction
            counter = limb.constant_movement_counter
            previous = limb.last_position
            if previous is not None:
                new_direction = position - previous
                if angle_between_vectors(new_direction, direction) < 90.0:
                    counter += 1
                else:
                    counter = 0
                direction = new_direction
            pending.append((limb, position, delta, direction, counter))

        # STEP 2: 최대 각도 계산
        arms = ArmVectors.from_local_joints(store.true_local)
        max_left_lower = max(self.max_angle_left_lower_arm, arms.left_elbow_angle)
        max_right_lower = max(self.max_angle_right_lower_arm, arms.right_elbow_angle)
        max_left_upper = max(
            self.max_angle_left_upper_arm, 180.0 - angle_between_vectors(arms.left_upper, UNIT_Y))
        max_right_upper = max(
            self.max_angle_right_upper_arm, 180.0 - angle_between_vectors(arms.right_upper, UNIT_Y))

        max_clinical = OrderedDict(self.max_clinical_angles)
        clinical = ClinicalAngles.from_local_joints(store.true_local)
        for limb_name, angles in (('LeftUpperArm', clinical.left_upper_arm),
                                  ('RightUpperArm', clinical.right_upper_arm)):
            for kind in ClinicalAngleKind:
                key = clinical_max_key(kind, limb_name)
                max_clinical[key] = max(max_clinical[key], angles.get(kind))

        # STEP 3: 반영
        if self.last_frame_index is not None and frame_rate > 0:
            self.seconds += (frame_index - self.last_frame_index) / frame_rate
        self.last_frame_index = frame_index
        self.frame_count += 1

        for limb, position, delta, direction, counter in pending:
            limb.direction = direction
            limb.constant_movement_counter = counter
            limb.history.append(position)
            limb.delta = delta
            limb.distance += delta
            limb.velocity = delta * frame_rate if frame_rate > 0 else 0.0

        self.max_angle_left_lower_arm = max_left_lower
        self.max_angle_right_lower_arm = max_right_lower
        self.max_angle_left_upper_arm = max_left_upper
        self.max_angle_right_upper_arm = max_right_upper
        self.max_clinical_angles = max_clinical

    # ------------------------------------------------------------------
    # 출력

    def snapshot(self) -> StatisticsSnapshot:
        """깊은 복사본 (이후 update 가 snapshot 을 바꾸지 않음)"""
        limbs = {
            joint: LimbSnapshot(
                distance=limb.distance,
                velocity=limb.velocity,
                delta=limb.delta,
                direction=limb.direction,
                constant_movement_counter=limb.constant_movement_counter,
                history=tuple(limb.history)
            )
            for joint, limb in self.limbs.items()
        }
        return copy.deepcopy(StatisticsSnapshot(
            seconds=self.seconds,
            frame_count=self.frame_count,
            limbs=limbs,
            max_angle_left_lower_arm=self.max_angle_left_lower_arm,
            max_angle_left_upper_arm=self.max_angle_left_upper_arm,
            max_angle_right_lower_arm=self.max_angle_right_lower_arm,
            max_angle_right_upper_arm=self.max_angle_right_upper_arm,
            max_clinical_angles=dict(self.max_clinical_angles)
        ))

    def frame_row(self) -> 'OrderedDict[str, float]':
        """
        프레임 로그 한 줄

        컬럼: Second, velocityLH..RE, deltaLH..RE, xLH,yLH,zLH .. xRE,yRE,zRE
        """
        row = OrderedDict()
        row['Second'] = self.seconds
        for joint in TRACKED_JOINTS:
            row[f'velocity{JOINT_ABBREVIATIONS[joint]}'] = self.limbs[joint].velocity
        for joint in TRACKED_JOINTS:
            row[f'delta{JOINT_ABBREVIATIONS[joint]}'] = self.limbs[joint].delta
        for joint in TRACKED_JOINTS:
            position = self.limbs[joint].last_position
            if position is None:
                position = np.zeros(3)
            for axis, value in zip('xyz', position):
                row[f'{axis}{JOINT_ABBREVIATIONS[joint]}'] = float(value)
        return row

    def summary_row(self) -> 'OrderedDict[str, float]':
        """세션 요약 한 줄 (누적 거리 + 최대 각도, degrees)"""
        row = OrderedDict()
        row['time'] = self.seconds
        for joint in TRACKED_JOINTS:
            row[f'distance{JOINT_ABBREVIATIONS[joint]}'] = self.limbs[joint].distance
        row['maxAngleLeftLowerArm'] = self.max_angle_left_lower_arm
        row['maxAngleLeftUpperArm'] = self.max_angle_left_upper_arm
        row['maxAngleRightLowerArm'] = self.max_angle_right_lower_arm
        row['maxAngleRightUpperArm'] = self.max_angle_right_upper_arm
        return row
