# core/skeleton.py
"""
=============================================================================
Skeleton: 프레임 단위 생체역학 분석 파이프라인
=============================================================================

매 프레임 update() 한 번으로 전체 파이프라인을 끝까지 실행합니다.

전체 실행 흐름:
1. JointStore.refresh(): 입력 → global 관절 + delta
2. FrameBuilder.build(): torso/어깨 → local 좌표계
3. BodyPlaneEngine.calculate(): sagittal / frontal / transversal
4. MirrorEngine.apply(): mirror therapy 중이면 한쪽 팔 덮어쓰기
5. local 관절 / 팔 벡터 계산
6. PostureClassifier / GestureRecognizer
7. StatisticsTracker (mirror 되지 않은 관절 사용)

모든 결과는 지역 변수에 계산한 뒤 마지막에 SkeletonState (frozen) 로 한 번에 공개.
접근자는 항상 마지막으로 공개된 상태만 읽으므로 계산 중인 프레임이 보이지 않음.

degenerate 프레임 (어깨가 겹침 등):
- WARNING 로그, local 좌표계/평면/자세/local 관절은 직전 값 유지
- global 관절은 갱신, 통계는 마지막 정상 local 위치로 계속

활용:
>>> skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
>>> skeleton.update(frame_input)
>>> skeleton.posture
<PostureShape.V: 1>
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from analysis.gesture_recognizer import GestureKind, GestureRecognizer
from analysis.posture_classifier import (
    ArmVectors, ClinicalAngleKind, PostureClassifier, PostureShape, clinical_angle
)
from analysis.statistics_tracker import StatisticsTracker
from core.body_planes import BodyPlaneEngine, BodyPlanes
from core.coordinate_system import FrameBuilder, LocalFrame
from core.exceptions import DegenerateFrameError
from core.joints import (
    Joint, JointFrameInput, JointLike, JointSample, JointStore, zero_vector
)
from core.mirror import MirrorEngine, MirrorMode
from utils.math_utils import UNIT_X, UNIT_Y, UNIT_Z, angle_between_vectors

logger = logging.getLogger(__name__)

_AXES = {'x': UNIT_X, 'y': UNIT_Y, 'z': UNIT_Z}


def _empty_samples() -> Dict[Joint, JointSample]:
    return {joint: JointSample() for joint in Joint}


def _empty_locals() -> Dict[Joint, np.ndarray]:
    return {joint: zero_vector() for joint in Joint}


@dataclass(frozen=True)
class SkeletonState:
    """
    한 프레임의 공개 결과 (update() 가 끝날 때만 교체됨)

    Attributes:
        frame_index: 마지막으로 처리한 프레임 번호 (처리 전이면 None)
        geometry_valid: 이번 프레임의 local 좌표계 계산 성공 여부
        local_frame / body_planes: 마지막 정상 좌표계 (한 번도 없으면 None)
        live / true_unmirrored: global 관절 (mirror 적용 / 실제)
        live_local / true_local: local 관절
    """
    frame_index: Optional[int] = None
    frame_rate: float = 0.0
    geometry_valid: bool = False
    mirrored: bool = False
    local_frame: Optional[LocalFrame] = None
    body_planes: Optional[BodyPlanes] = None
    live: Dict[Joint, JointSample] = field(default_factory=_empty_samples)
    true_unmirrored: Dict[Joint, JointSample] = field(default_factory=_empty_samples)
    live_local: Dict[Joint, np.ndarray] = field(default_factory=_empty_locals)
    true_local: Dict[Joint, np.ndarray] = field(default_factory=_empty_locals)
    arms: ArmVectors = field(default_factory=ArmVectors.zeros)
    posture: PostureShape = PostureShape.NO_POSE


class Skeleton:
    """
    사람 한 명의 skeleton 분석기

    Args:
        mirror_mode: MirrorMode (기본 OFF)
        full_body_tracking: False 면 hip/knee/foot 은 갱신하지 않음
        evaluate_posture_and_gesture: 자세/제스처 판정 여부
        evaluate_statistics: 통계 누적 여부
    """

    def __init__(self,
                 mirror_mode: MirrorMode = MirrorMode.OFF,
                 full_body_tracking: bool = True,
                 evaluate_posture_and_gesture: bool = True,
                 evaluate_statistics: bool = True,
                 frame_builder: Optional[FrameBuilder] = None,
                 posture_classifier: Optional[PostureClassifier] = None,
                 gesture_recognizer: Optional[GestureRecognizer] = None,
                 statistics: Optional[StatisticsTracker] = None):
        self.store = JointStore(full_body_tracking=full_body_tracking)
        self.frame_builder = frame_builder or FrameBuilder()
        self.mirror = MirrorEngine(mirror_mode)
        self.posture_classifier = posture_classifier or PostureClassifier()
        self.gesture_recognizer = gesture_recognizer or GestureRecognizer()
        self.statistics = statistics or StatisticsTracker()

        self.evaluate_posture_and_gesture = evaluate_posture_and_gesture
        self.evaluate_statistics = evaluate_statistics

        self._state = SkeletonState()
        self._updating = False

    # ------------------------------------------------------------------
    # 설정

    @property
    def full_body_tracking(self) -> bool:
        return self.store.full_body_tracking

    @full_body_tracking.setter
    def full_body_tracking(self, value: bool) -> None:
        self.store.full_body_tracking = bool(value)

    @property
    def mirror_mode(self) -> MirrorMode:
        return self.mirror.mode

    @mirror_mode.setter
    def mirror_mode(self, value) -> None:
        self.mirror.mode = MirrorMode.coerce(value)

    def set_posture_tolerance(self, tolerance: float) -> None:
        self.posture_classifier.tolerance = tolerance

    def set_gesture_tolerance(self, tolerance: float) -> None:
        self.gesture_recognizer.tolerance = tolerance

    # ------------------------------------------------------------------
    # 파이프라인

    def update(self, frame_input: JointFrameInput) -> SkeletonState:
        """
        한 프레임 처리 후 새 SkeletonState 를 공개

        JointStore 는 작업 사본에서 갱신하고 파이프라인이 끝까지 성공했을 때만 교체.
        도중에 예외가 나면 store / gesture 상태는 직전 프레임 그대로 남음.

        Args:
            frame_input: acquisition 쪽에서 받은 이번 프레임 입력

        Returns:
            SkeletonState: 이번 프레임 결과 (self.state 와 같은 객체)

        Raises:
            RuntimeError: update() 실행 중에 다시 호출된 경우
        """
        if self._updating:
            raise RuntimeError("Skeleton.update() is not reentrant")
        self._updating = True
        try:
            store = self.store.copy()
            gesture_checkpoint = self.gesture_recognizer.checkpoint()
            try:
                state = self._process(frame_input, store)
            except Exception:
                self.gesture_recognizer.restore(gesture_checkpoint)
                raise
            self.store = store
            self._state = state
        finally:
            self._updating = False
        return self._state

    def _process(self, frame_input: JointFrameInput, store: JointStore) -> SkeletonState:
        previous = self._state

        # STEP 1: global 관절
        store.refresh(frame_input)

        # STEP 2-3: local 좌표계 + body plane
        try:
            local_frame = self.frame_builder.build(
                store.position(Joint.TORSO),
                store.position(Joint.LEFT_SHOULDER),
                store.position(Joint.RIGHT_SHOULDER)
            )
            body_planes = BodyPlaneEngine.calculate(local_frame)
            geometry_valid = True
        except DegenerateFrameError as e:
            logger.warning("frame %d: degenerate geometry (%s), keeping previous local state",
                           frame_input.frame_index, e)
            local_frame = previous.local_frame
            body_planes = previous.body_planes
            geometry_valid = False

        # STEP 4: mirror (이번 프레임 평면이 없으면 건너뜀)
        mirrored = self.mirror.apply(store, body_planes.sagittal if geometry_valid else None)

        # STEP 5: local 관절
        if geometry_valid:
            live_local = {joint: local_frame.to_local(sample.position) for joint, sample in store.live.items()}
            true_local = {joint: local_frame.to_local(sample.position)
                          for joint, sample in store.true_unmirrored.items()}
            store.set_local(live_local, true_local)
            arms = ArmVectors.from_local_joints(live_local)
        else:
            live_local = previous.live_local
            true_local = previous.true_local
            arms = previous.arms

        # STEP 6: posture / gesture
        posture = previous.posture
        if geometry_valid and self.evaluate_posture_and_gesture:
            posture = self.posture_classifier.classify(arms)
            self.gesture_recognizer.evaluate(arms, frame_input.frame_index)

        # STEP 7: statistics (실제 관절, 마지막 정상 local 위치)
        if self.evaluate_statistics:
            self.statistics.update(store, frame_input.frame_index, frame_input.frame_rate)

        return SkeletonState(
            frame_index=frame_input.frame_index,
            frame_rate=frame_input.frame_rate,
            geometry_valid=geometry_valid,
            mirrored=mirrored,
            local_frame=local_frame,
            body_planes=body_planes,
            live=dict(store.live),
            true_unmirrored=dict(store.true_unmirrored),
            live_local=dict(live_local),
            true_local=dict(true_local),
            arms=arms,
            posture=posture
        )

    # ------------------------------------------------------------------
    # 관절 접근자 (범위 밖 식별자 → 0 기본값)

    @property
    def state(self) -> SkeletonState:
        return self._state

    def _sample(self, joint: JointLike, unmirrored: bool) -> JointSample:
        key = Joint.coerce(joint)
        if key is None:
            return JointSample()
        source = self._state.true_unmirrored if unmirrored else self._state.live
        return source[key]

    def joint(self, joint: JointLike, unmirrored: bool = False) -> np.ndarray:
        return self._sample(joint, unmirrored).position.copy()

    def joint_local(self, joint: JointLike, unmirrored: bool = False) -> np.ndarray:
        key = Joint.coerce(joint)
        if key is None:
            return zero_vector()
        source = self._state.true_local if unmirrored else self._state.live_local
        return source[key].copy()

    def joint_confidence(self, joint: JointLike, unmirrored: bool = False) -> float:
        return self._sample(joint, unmirrored).confidence

    def joint_orientation(self, joint: JointLike, unmirrored: bool = False) -> np.ndarray:
        return self._sample(joint, unmirrored).orientation.copy()

    def joint_orientation_confidence(self, joint: JointLike, unmirrored: bool = False) -> float:
        return self._sample(joint, unmirrored).orientation_confidence

    def joint_delta(self, joint: JointLike, unmirrored: bool = False) -> float:
        return self._sample(joint, unmirrored).delta

    def joint_unmirrored(self, joint: JointLike) -> np.ndarray:
        return self.joint(joint, unmirrored=True)

    def joint_local_unmirrored(self, joint: JointLike) -> np.ndarray:
        return self.joint_local(joint, unmirrored=True)

    def joint_confidence_unmirrored(self, joint: JointLike) -> float:
        return self.joint_confidence(joint, unmirrored=True)

    def joint_orientation_unmirrored(self, joint: JointLike) -> np.ndarray:
        return self.joint_orientation(joint, unmirrored=True)

    def joint_orientation_confidence_unmirrored(self, joint: JointLike) -> float:
        return self.joint_orientation_confidence(joint, unmirrored=True)

    def joint_delta_unmirrored(self, joint: JointLike) -> float:
        return self.joint_delta(joint, unmirrored=True)

    # ------------------------------------------------------------------
    # 좌표계 / 평면

    @property
    def local_frame(self) -> Optional[LocalFrame]:
        return self._state.local_frame

    @property
    def body_planes(self) -> Optional[BodyPlanes]:
        return self._state.body_planes

    def mirror_plane_r(self) -> np.ndarray:
        planes = self._state.body_planes
        return zero_vector() if planes is None else planes.mirror_plane.r.copy()

    def mirror_plane_n0(self) -> np.ndarray:
        planes = self._state.body_planes
        return zero_vector() if planes is None else planes.mirror_plane.n0.copy()

    def mirror_plane_d(self) -> float:
        planes = self._state.body_planes
        return 0.0 if planes is None else planes.mirror_plane.d

    def orientation_angles(self) -> Tuple[float, float, float]:
        """
        local 축과 global 축 사이 각도 (alpha, beta, gamma), degrees

        local 좌표계가 없으면 (0, 0, 0)
        """
        frame = self._state.local_frame
        if frame is None:
            return 0.0, 0.0, 0.0
        return (angle_between_vectors(frame.x_axis, UNIT_X),
                angle_between_vectors(frame.y_axis, UNIT_Y),
                angle_between_vectors(frame.z_axis, UNIT_Z))

    def distance_to_sensor(self) -> float:
        """torso 벡터의 길이 (센서 원점까지 거리, mm)"""
        return float(np.linalg.norm(self.joint(Joint.TORSO)))

    # ------------------------------------------------------------------
    # 각도

    def angle_between(self, a1: JointLike, a0: JointLike, b1: JointLike, b0: JointLike) -> float:
        """두 limb 벡터 (a1 - a0), (b1 - b0) 사이 각도 (global, degrees)"""
        return angle_between_vectors(self.joint(a1) - self.joint(a0), self.joint(b1) - self.joint(b0))

    def angle_to_local_axis(self, j1: JointLike, j0: JointLike, axis: str) -> float:
        """limb 벡터 (j1 - j0) 와 local 축 사이 각도. local 좌표계가 없으면 0"""
        if self._state.local_frame is None:
            return 0.0
        unit = _AXES.get(str(axis).lower())
        if unit is None:
            return 0.0
        return angle_between_vectors(self.joint_local(j1) - self.joint_local(j0), unit)

    def angle_to_global_axis(self, j1: JointLike, j0: JointLike, axis: str) -> float:
        """limb 벡터 (j1 - j0) 와 센서 global 축 사이 각도"""
        unit = _AXES.get(str(axis).lower())
        if unit is None:
            return 0.0
        return angle_between_vectors(self.joint(j1) - self.joint(j0), unit)

    @property
    def arm_vectors(self) -> ArmVectors:
        """live local 팔 벡터 (upper / lower, 좌우)"""
        return self._state.arms

    # ------------------------------------------------------------------
    # 자세 / 제스처 / 임상 각도

    @property
    def posture(self) -> PostureShape:
        return self._state.posture

    def clinical_angle(self, kind: ClinicalAngleKind, distal: JointLike, proximal: JointLike) -> float:
        if self._state.local_frame is None:
            return 0.0
        return clinical_angle(kind, distal, proximal, self._state.live_local)

    def last_gesture(self, lookback: int) -> GestureKind:
        """최근 lookback 프레임 안에 인식된 gesture (판정이 꺼져 있으면 NONE)"""
        if not self.evaluate_posture_and_gesture or self._state.frame_index is None:
            return GestureKind.NONE
        return self.gesture_recognizer.last_gesture(lookback, self._state.frame_index)

