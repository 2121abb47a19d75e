# core/joints.py
"""
=============================================================================
관절(Joint) 데이터 저장소
=============================================================================

센서가 매 프레임 전달하는 15개 관절의 위치/신뢰도/방향(orientation)을 보관합니다.

두 벌의 데이터를 동시에 유지:
- live: 현재 사용 중인 관절 (mirror therapy 중이면 반대쪽이 거울상으로 덮어써짐)
        → posture / gesture 판정이 읽음
- true_unmirrored: 센서가 측정한 실제 관절 (절대 mirror 되지 않음)
        → statistics 가 읽음

각 관절은 Joint enum 으로만 접근하며, 잘못된 식별자는 0 기본값을 돌려줍니다.

활용:
>>> store = JointStore()
>>> store.refresh(frame_input)
>>> store.position(Joint.LEFT_HAND)
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Dict, Mapping, Optional, Union

import numpy as np


class Joint(IntEnum):
    """15개 해부학적 관절 (좌/우는 사람 기준)"""
    HEAD = 0
    NECK = 1
    LEFT_SHOULDER = 2
    LEFT_ELBOW = 3
    LEFT_HAND = 4
    RIGHT_SHOULDER = 5
    RIGHT_ELBOW = 6
    RIGHT_HAND = 7
    TORSO = 8
    LEFT_HIP = 9
    LEFT_KNEE = 10
    LEFT_FOOT = 11
    RIGHT_HIP = 12
    RIGHT_KNEE = 13
    RIGHT_FOOT = 14

    @classmethod
    def coerce(cls, value) -> Optional['Joint']:
        """
        int / 이름 / Joint 를 Joint 로 변환

        Returns:
            Joint 또는 None (범위 밖 식별자)
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError:
                return None
        return None


UPPER_BODY_JOINTS = (
    Joint.HEAD, Joint.NECK,
    Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW, Joint.LEFT_HAND,
    Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW, Joint.RIGHT_HAND,
    Joint.TORSO,
)


def zero_vector() -> np.ndarray:
    return np.zeros(3)


def identity_orientation() -> np.ndarray:
    return np.eye(4)


@dataclass(frozen=True)
class JointSample:
    """단일 관절의 한 프레임 데이터 (global 좌표)"""
    position: np.ndarray = field(default_factory=zero_vector)          # (3,)
    confidence: float = 0.0                                            # 0..1
    orientation: np.ndarray = field(default_factory=identity_orientation)  # (4, 4) 회전 + 원점
    orientation_confidence: float = 0.0
    delta: float = 0.0   # 이전 프레임 대비 이동 거리


@dataclass(frozen=True)
class JointFrameInput:
    """
    acquisition 쪽에서 매 프레임 넘겨주는 입력

    Attributes:
        frame_index: 현재 프레임 번호
        frame_rate: 초당 프레임 수 (velocity / 경과 시간 계산에 사용)
        positions: Joint → (3,) 위치
        confidences: Joint → 위치 신뢰도
        orientations: Joint → (4, 4) 방향 행렬
        orientation_confidences: Joint → 방향 신뢰도

    빠진 관절은 위치 0, identity 방향, 신뢰도 0 으로 채워짐.
    """
    frame_index: int
    frame_rate: float
    positions: Mapping[Joint, np.ndarray]
    confidences: Mapping[Joint, float] = field(default_factory=dict)
    orientations: Mapping[Joint, np.ndarray] = field(default_factory=dict)
    orientation_confidences: Mapping[Joint, float] = field(default_factory=dict)

    def __post_init__(self):
        # 형태가 잘못된 배열은 호출자 버그 → 바로 ValueError
        for joint, pos in self.positions.items():
            if np.shape(pos) != (3,):
                raise ValueError(f"position of {Joint(joint).name} must have shape (3,), got {np.shape(pos)}")
        for joint, mat in self.orientations.items():
            if np.shape(mat) != (4, 4):
                raise ValueError(f"orientation of {Joint(joint).name} must have shape (4, 4), got {np.shape(mat)}")

    def sample(self, joint: Joint) -> JointSample:
        """입력에서 한 관절의 JointSample 을 만든다 (delta 는 JointStore 가 계산)"""
        position = self.positions.get(joint)
        orientation = self.orientations.get(joint)
        return JointSample(
            position=np.array(position, dtype=float) if position is not None else zero_vector(),
            confidence=float(self.confidences.get(joint, 0.0)),
            orientation=np.array(orientation, dtype=float) if orientation is not None else identity_orientation(),
            orientation_confidence=float(self.orientation_confidences.get(joint, 0.0)),
        )


JointLike = Union[Joint, int, str]


class JointStore:
    """
    15개 관절의 global / local 데이터 저장소

    역할:
    1. 매 프레임 입력으로 global 위치를 갱신하고 delta(이동 거리) 계산
    2. live / true_unmirrored 두 벌 유지
    3. local 좌표계 위치 보관 (FrameBuilder 결과로 변환된 값)

    모든 접근은 Joint enum 을 통해서만 하며,
    범위 밖 식별자는 0 벡터 / 0.0 / identity 행렬을 반환.
    """

    def __init__(self, full_body_tracking: bool = True):
        self.full_body_tracking = full_body_tracking
        self.live: Dict[Joint, JointSample] = {j: JointSample() for j in Joint}
        self.true_unmirrored: Dict[Joint, JointSample] = {j: JointSample() for j in Joint}
        self.live_local: Dict[Joint, np.ndarray] = {j: zero_vector() for j in Joint}
        self.true_local: Dict[Joint, np.ndarray] = {j: zero_vector() for j in Joint}
        self.has_previous = False  # 첫 프레임은 이전 위치가 없으므로 delta = 0
        self.previous_live: Dict[Joint, JointSample] = dict(self.live)
        self.previous_valid = False

    def tracked_joints(self):
        """full body tracking 이 꺼져 있으면 상체 관절만"""
        if self.full_body_tracking:
            return tuple(Joint)
        return UPPER_BODY_JOINTS

    def copy(self) -> 'JointStore':
        """
        한 프레임 처리용 작업 사본

        JointSample 은 frozen 이고 배열은 통째로 교체되므로 dict 만 새로 만들면 충분.
        """
        clone = JointStore(full_body_tracking=self.full_body_tracking)
        clone.live = dict(self.live)
        clone.true_unmirrored = dict(self.true_unmirrored)
        clone.live_local = dict(self.live_local)
        clone.true_local = dict(self.true_local)
        clone.has_previous = self.has_previous
        clone.previous_live = dict(self.previous_live)
        clone.previous_valid = self.previous_valid
        return clone

    def refresh(self, frame_input: JointFrameInput) -> None:
        """
        새 프레임 입력으로 global 관절 갱신

        delta 는 이전 프레임 위치와의 거리.
        live 와 true_unmirrored 모두 실제 측정값으로 덮어씀
        (mirror 는 이후 MirrorEngine 이 live 에만 적용).
        """
        # mirror 된 관절의 delta 계산을 위해 직전 live 를 보관
        self.previous_live = dict(self.live)
        self.previous_valid = self.has_previous

        for joint in self.tracked_joints():
            sample = frame_input.sample(joint)

            # 측정 실패 (NaN / inf) → 빠진 관절로 취급: 직전 위치 유지, 신뢰도 0, delta 0
            missing = not np.all(np.isfinite(sample.position))
            if missing:
                sample = replace(sample, position=self.true_unmirrored[joint].position.copy(), confidence=0.0)
            if not np.all(np.isfinite(sample.orientation)):
                sample = replace(sample, orientation=self.true_unmirrored[joint].orientation.copy(),
                                 orientation_confidence=0.0)

            # live 의 delta 는 이전 live 위치 기준
            if self.has_previous and not missing:
                live_delta = float(np.linalg.norm(self.live[joint].position - sample.position))
                true_delta = float(np.linalg.norm(self.true_unmirrored[joint].position - sample.position))
            else:
                live_delta = true_delta = 0.0

            self.live[joint] = replace(sample, delta=live_delta)
            self.true_unmirrored[joint] = replace(sample, delta=true_delta)

        self.has_previous = True

    def set_live(self, joint: Joint, sample: JointSample) -> None:
        """mirror 결과로 live 관절을 덮어씀"""
        self.live[joint] = sample

    def previous_live_position(self, joint: Joint) -> Optional[np.ndarray]:
        """직전 프레임의 live 위치 (첫 프레임이면 None)"""
        if not self.previous_valid:
            return None
        return self.previous_live[joint].position

    def set_local(self, live_local: Dict[Joint, np.ndarray], true_local: Dict[Joint, np.ndarray]) -> None:
        self.live_local = live_local
        self.true_local = true_local

    # ------------------------------------------------------------------
    # 접근자 (범위 밖 → 0 기본값)
    def _get(self, samples: Dict[Joint, JointSample], joint: JointLike) -> JointSample:
        key = Joint.coerce(joint)
        if key is None:
            return JointSample()
        return samples[key]

    def sample(self, joint: JointLike, unmirrored: bool = False) -> JointSample:
        return self._get(self.true_unmirrored if unmirrored else self.live, joint)

    def position(self, joint: JointLike, unmirrored: bool = False) -> np.ndarray:
        return self.sample(joint, unmirrored).position.copy()

    def local_position(self, joint: JointLike, unmirrored: bool = False) -> np.ndarray:
        key = Joint.coerce(joint)
        if key is None:
            return zero_vector()
        source = self.true_local if unmirrored else self.live_local
        return source[key].copy()
