# analysis/posture_classifier.py
"""
=============================================================================
상체 자세(Posture) 분류 + 임상 각도(Clinical angles)
=============================================================================

local 좌표계의 팔 벡터로 상체 자세를 정해진 모양 중 하나로 분류합니다.
(H = hand, E = elbow, S = shoulder, 정면에서 본 모양)

    H        H          SS          H         H       E  SS  E
      E    E    = V   E    E  = A              = U              = N
        SS          H        H    E  SS  E             H         H

    E        E          H        H         HH             HH
       SS       = M   E    E  = W      E        E = O      EE  = I
    H        H           SS                SS              SS

    HANDS_FORWARD_DOWN: 팔을 곧게 펴고 앞쪽 아래 45도로 내림

분류 규칙:
- V, A, U, N, M, W, O, I, HANDS_FORWARD_DOWN 순서로 검사, 처음 맞는 모양이 결과
- 아무것도 맞지 않으면 NO_POSE
- 각 모양은 각도 범위 검사의 AND, 모든 범위는 tolerance angle 만큼 넓어짐
  tolerance angle = tolerance (0..1) × reference angle (20도)

임상 각도 (neutral-zero method):
- abduction / adduction: frontal plane 투영, -Y 와의 각도 (바깥쪽 / 안쪽)
- anteversion / retroversion: sagittal plane 투영, -Y 와의 각도 (앞쪽 / 뒤쪽)
- elbow↔shoulder, knee↔hip 쌍만 계산, 그 외 쌍은 0

모든 각도 단위는 degree.
"""

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, List, Mapping, Optional, Tuple

import numpy as np

import config
from core.body_planes import BodyPlane
from core.joints import Joint, JointLike
from utils.math_utils import (
    UNIT_X, UNIT_Y, UNIT_Z,
    angle_between_vectors, is_value_between, project_onto_plane, distance
)

logger = logging.getLogger(__name__)


class PostureShape(IntEnum):
    NO_POSE = 0
    V = 1
    A = 2
    U = 3
    N = 4
    M = 5
    W = 6
    O = 7
    I = 8
    HANDS_FORWARD_DOWN = 9


@dataclass(frozen=True)
class ArmVectors:
    """
    local 좌표계의 팔 벡터

    upper = elbow - shoulder, lower = hand - elbow
    hand 위치는 O shape 의 두 손 거리 검사, shoulder 위치는 push gesture 에 사용
    """
    left_upper: np.ndarray
    left_lower: np.ndarray
    right_upper: np.ndarray
    right_lower: np.ndarray
    left_hand: np.ndarray
    right_hand: np.ndarray
    left_shoulder: np.ndarray
    right_shoulder: np.ndarray

    @classmethod
    def from_local_joints(cls, local: Mapping[Joint, np.ndarray]) -> 'ArmVectors':
        return cls(
            left_upper=local[Joint.LEFT_ELBOW] - local[Joint.LEFT_SHOULDER],
            left_lower=local[Joint.LEFT_HAND] - local[Joint.LEFT_ELBOW],
            right_upper=local[Joint.RIGHT_ELBOW] - local[Joint.RIGHT_SHOULDER],
            right_lower=local[Joint.RIGHT_HAND] - local[Joint.RIGHT_ELBOW],
            left_hand=np.asarray(local[Joint.LEFT_HAND], dtype=float),
            right_hand=np.asarray(local[Joint.RIGHT_HAND], dtype=float),
            left_shoulder=np.asarray(local[Joint.LEFT_SHOULDER], dtype=float),
            right_shoulder=np.asarray(local[Joint.RIGHT_SHOULDER], dtype=float)
        )

    @classmethod
    def zeros(cls) -> 'ArmVectors':
        z = np.zeros(3)
        return cls(z, z, z, z, z, z, z, z)

    @property
    def left_elbow_angle(self) -> float:
        """윗팔과 아래팔 사이 각도 (0 = 팔이 곧게 펴짐)"""
        return angle_between_vectors(self.left_upper, self.left_lower)

    @property
    def right_elbow_angle(self) -> float:
        return angle_between_vectors(self.right_upper, self.right_lower)

    @property
    def upper_arm_divergence(self) -> float:
        """두 윗팔 사이 각도"""
        return angle_between_vectors(self.left_upper, self.right_upper)

    @property
    def left_shoulder_to_hand(self) -> np.ndarray:
        """손 → 어깨 벡터 (push gesture 판정용)"""
        return self.left_shoulder - self.left_hand

    @property
    def right_shoulder_to_hand(self) -> np.ndarray:
        return self.right_shoulder - self.right_hand

    @property
    def upper_arm_sum(self) -> np.ndarray:
        return self.left_upper + self.right_upper


@dataclass(frozen=True)
class PostureTolerance:
    fraction: float
    angle: float
    hand_distance: float


# -----------------------------------------------------------------------------
# 모양별 판정 함수 (순수 함수: ArmVectors, PostureTolerance → bool)

def _elbows_within(arms: ArmVectors, lower: float, upper: float) -> bool:
    return (is_value_between(arms.left_elbow_angle, lower, upper)
            and is_value_between(arms.right_elbow_angle, lower, upper))


def is_v_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    # 팔이 곧게 펴짐 → 두 윗팔 ~90도 → 윗팔 합이 위쪽(+Y)
    return (_elbows_within(arms, 0, 10 + t)
            and is_value_between(arms.upper_arm_divergence, 85 - t, 95 + t)
            and is_value_between(angle_between_vectors(arms.upper_arm_sum, UNIT_Y), 0, 15 + t))


def is_a_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    return (_elbows_within(arms, 0, 10 + t)
            and is_value_between(arms.upper_arm_divergence, 85 - t, 95 + t)
            and is_value_between(angle_between_vectors(arms.upper_arm_sum, UNIT_Y), 165 - t, 180))


def is_u_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    # 팔꿈치 ~90도 → 윗팔이 일직선 → 아래팔 위쪽
    return (_elbows_within(arms, 85 - t, 95 + t)
            and is_value_between(arms.upper_arm_divergence, 170 - t, 180)
            and is_value_between(angle_between_vectors(arms.left_lower, UNIT_Y), 0, 15 + t))


def is_n_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    return (_elbows_within(arms, 85 - t, 95 + t)
            and is_value_between(arms.upper_arm_divergence, 170 - t, 180)
            and is_value_between(angle_between_vectors(arms.left_lower, UNIT_Y), 165 - t, 180))


def is_m_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    # 팔꿈치가 어깨 위 45도, 아래팔은 아래로
    return (_elbows_within(arms, 125 - t, 145 + t)
            and is_value_between(arms.upper_arm_divergence, 80 - t, 100 + t)
            and is_value_between(angle_between_vectors(arms.left_upper, UNIT_Y), 35 - t, 55 + t)
            and is_value_between(angle_between_vectors(arms.right_upper, UNIT_Y), 35 - t, 55 + t)
            and is_value_between(angle_between_vectors(arms.left_lower, UNIT_Y), 165 - t, 180)
            and is_value_between(angle_between_vectors(arms.right_lower, UNIT_Y), 165 - t, 180))


def is_w_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    # 팔꿈치가 어깨 아래 45도, 아래팔은 위로
    return (_elbows_within(arms, 125 - t, 145 + t)
            and is_value_between(arms.upper_arm_divergence, 80 - t, 100 + t)
            and is_value_between(angle_between_vectors(arms.left_upper, UNIT_Y), 125 - t, 145 + t)
            and is_value_between(angle_between_vectors(arms.right_upper, UNIT_Y), 125 - t, 145 + t)
            and is_value_between(angle_between_vectors(arms.left_lower, UNIT_Y), 0, 15 + t)
            and is_value_between(angle_between_vectors(arms.right_lower, UNIT_Y), 0, 15 + t))


def is_o_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    hand_gap = distance(arms.right_hand, arms.left_hand)
    if not is_value_between(hand_gap, 0, tol.hand_distance + tol.hand_distance * tol.fraction):
        return False
    # 윗팔 ~45도, 팔꿈치 ~100도, 윗팔 합은 위쪽
    return (is_value_between(angle_between_vectors(arms.left_upper, UNIT_Y), 40 - t, 50 + t)
            and is_value_between(angle_between_vectors(arms.right_upper, UNIT_Y), 40 - t, 50 + t)
            and _elbows_within(arms, 95 - t, 105 + t)
            and is_value_between(angle_between_vectors(arms.upper_arm_sum, UNIT_Y), 0, 15 + t))


def is_i_shape(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    return (_elbows_within(arms, 0, 10 + t)
            and is_value_between(arms.upper_arm_divergence, 0, 15 + t)
            and is_value_between(angle_between_vectors(arms.left_upper, UNIT_Y), 0, 15 + t))


def is_hands_forward_down(arms: ArmVectors, tol: PostureTolerance) -> bool:
    t = tol.angle
    # 앞쪽은 -Z 이므로 +Z 와의 각도가 90도 이상
    return (_elbows_within(arms, 0, 10 + t)
            and is_value_between(arms.upper_arm_divergence, 0, 15 + t)
            and is_value_between(angle_between_vectors(arms.left_upper, UNIT_Y), 130 - t, 140 + t)
            and is_value_between(angle_between_vectors(arms.left_upper, UNIT_Z), 90, 180))


PosturePredicate = Callable[[ArmVectors, PostureTolerance], bool]

# 우선순위 순서 (처음 맞는 모양이 결과)
POSTURE_PREDICATES: List[Tuple[PosturePredicate, PostureShape]] = [
    (is_v_shape, PostureShape.V),
    (is_a_shape, PostureShape.A),
    (is_u_shape, PostureShape.U),
    (is_n_shape, PostureShape.N),
    (is_m_shape, PostureShape.M),
    (is_w_shape, PostureShape.W),
    (is_o_shape, PostureShape.O),
    (is_i_shape, PostureShape.I),
    (is_hands_forward_down, PostureShape.HANDS_FORWARD_DOWN),
]


class PostureClassifier:
    """
    상체 자세 분류 클래스

    상태를 갖지 않음: 결과는 현재 프레임의 ArmVectors 와 tolerance 만으로 결정.

    활용:
        >>> classifier = PostureClassifier(tolerance=0.3)
        >>> classifier.classify(ArmVectors.from_local_joints(local_joints))
        <PostureShape.V: 1>
    """

    DEFAULT_TOLERANCE = config.POSTURE_CONFIG['tolerance']

    def __init__(self,
                 tolerance: float = config.POSTURE_CONFIG['tolerance'],
                 reference_angle: float = config.POSTURE_CONFIG['reference_angle'],
                 hand_distance: float = config.POSTURE_CONFIG['hand_distance'],
                 predicates: Optional[List[Tuple[PosturePredicate, PostureShape]]] = None):
        self.reference_angle = reference_angle
        self.hand_distance = hand_distance
        self.predicates = list(predicates) if predicates is not None else list(POSTURE_PREDICATES)
        self._tolerance = self.DEFAULT_TOLERANCE
        self.tolerance = tolerance

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: float) -> None:
        """0..1 범위 밖이면 기본값 0.3 으로 되돌림"""
        if value is not None and 0.0 <= value <= 1.0:
            self._tolerance = float(value)
        else:
            logger.debug("posture tolerance %r out of range, using default %s", value, self.DEFAULT_TOLERANCE)
            self._tolerance = self.DEFAULT_TOLERANCE

    @property
    def tolerance_angle(self) -> float:
        return self._tolerance * self.reference_angle

    def _tolerance_bundle(self) -> PostureTolerance:
        return PostureTolerance(
            fraction=self._tolerance,
            angle=self.tolerance_angle,
            hand_distance=self.hand_distance
        )

    def classify(self, arms: ArmVectors) -> PostureShape:
        """
        우선순위 순서로 모양을 검사

        Returns:
            PostureShape: 처음 맞는 모양, 없으면 NO_POSE
        """
        tol = self._tolerance_bundle()
        return next(
            (shape for predicate, shape in self.predicates if predicate(arms, tol)),
            PostureShape.NO_POSE
        )


# =============================================================================
# 임상 각도 (Clinical angles)

class ClinicalAngleKind(Enum):
    ABDUCTION = 'abduction'
    ADDUCTION = 'adduction'
    ANTEVERSION = 'anteversion'
    RETROVERSION = 'retroversion'


# (distal, proximal) → 몸의 어느 쪽인지 (-1 = 왼쪽, +1 = 오른쪽, local X 부호)
LIMB_PAIRS = {
    (Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER): -1,
    (Joint.RIGHT_ELBOW, Joint.RIGHT_SHOULDER): 1,
    (Joint.LEFT_KNEE, Joint.LEFT_HIP): -1,
    (Joint.RIGHT_KNEE, Joint.RIGHT_HIP): 1,
}


def clinical_angle(kind: ClinicalAngleKind,
                   distal: JointLike,
                   proximal: JointLike,
                   local: Mapping[Joint, np.ndarray]) -> float:
    """
    limb 의 임상 각도 계산 (neutral-zero method, degrees)

    동작 원리:
    1. limb 벡터 = local(distal) - local(proximal)
    2. proximal 관절을 지나는 평면으로 distal 이 어느 쪽인지 판정
       - abduction/adduction: x 축 법선 평면 (바깥쪽/안쪽)
       - anteversion/retroversion: z 축 법선 평면 (앞 = -Z / 뒤 = +Z)
    3. 해당 쪽이면 body plane 으로 투영 후 -Y 와의 각도, 아니면 0

    Args:
        kind: ClinicalAngleKind
        distal: elbow 또는 knee
        proximal: shoulder 또는 hip (같은 쪽)
        local: Joint → local 좌표

    Returns:
        float: 각도 (degrees), 지원하지 않는 관절 쌍이면 0
    """
    distal_joint = Joint.coerce(distal)
    proximal_joint = Joint.coerce(proximal)
    side = LIMB_PAIRS.get((distal_joint, proximal_joint))
    if side is None:
        return 0.0

    distal_pos = np.asarray(local[distal_joint], dtype=float)
    proximal_pos = np.asarray(local[proximal_joint], dtype=float)
    limb = distal_pos - proximal_pos
    down = -UNIT_Y

    if kind in (ClinicalAngleKind.ABDUCTION, ClinicalAngleKind.ADDUCTION):
        # 바깥쪽 = 몸 중심에서 멀어지는 방향 (왼쪽은 -X, 오른쪽은 +X)
        lateral_plane = BodyPlane.from_point_normal(proximal_pos, side * UNIT_X)
        lateral = lateral_plane.side_of(distal_pos)
        wanted = 1 if kind is ClinicalAngleKind.ABDUCTION else -1
        if lateral != wanted:
            return 0.0
        return angle_between_vectors(project_onto_plane(limb, 2), down)

    # 앞쪽 = -Z
    frontal_plane = BodyPlane.from_point_normal(proximal_pos, -UNIT_Z)
    anterior = frontal_plane.side_of(distal_pos)
    wanted = 1 if kind is ClinicalAngleKind.ANTEVERSION else -1
    if anterior != wanted:
        return 0.0
    return angle_between_vectors(project_onto_plane(limb, 0), down)


@dataclass(frozen=True)
class LimbClinicalAngles:
    abduction: float = 0.0
    adduction: float = 0.0
    anteversion: float = 0.0
    retroversion: float = 0.0

    @classmethod
    def for_limb(cls, distal: Joint, proximal: Joint,
                 local: Mapping[Joint, np.ndarray]) -> 'LimbClinicalAngles':
        return cls(
            abduction=clinical_angle(ClinicalAngleKind.ABDUCTION, distal, proximal, local),
            adduction=clinical_angle(ClinicalAngleKind.ADDUCTION, distal, proximal, local),
            anteversion=clinical_angle(ClinicalAngleKind.ANTEVERSION, distal, proximal, local),
            retroversion=clinical_angle(ClinicalAngleKind.RETROVERSION, distal, proximal, local)
        )

    def get(self, kind: ClinicalAngleKind) -> float:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class ClinicalAngles:
    """양쪽 윗팔 / 허벅지의 임상 각도 묶음"""
    left_upper_arm: LimbClinicalAngles = LimbClinicalAngles()
    right_upper_arm: LimbClinicalAngles = LimbClinicalAngles()
    left_upper_leg: LimbClinicalAngles = LimbClinicalAngles()
    right_upper_leg: LimbClinicalAngles = LimbClinicalAngles()

    @classmethod
    def from_local_joints(cls, local: Mapping[Joint, np.ndarray]) -> 'ClinicalAngles':
        return cls(
            left_upper_arm=LimbClinicalAngles.for_limb(Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER, local),
            right_upper_arm=LimbClinicalAngles.for_limb(Joint.RIGHT_ELBOW, Joint.RIGHT_SHOULDER, local),
            left_upper_leg=LimbClinicalAngles.for_limb(Joint.LEFT_KNEE, Joint.LEFT_HIP, local),
            right_upper_leg=LimbClinicalAngles.for_limb(Joint.RIGHT_KNEE, Joint.RIGHT_HIP, local)
        )
