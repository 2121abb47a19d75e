# core/frame_sources.py
"""
=============================================================================
프레임 입력 만들기: MediaPipe landmark / 기록된 CSV → JointFrameInput
=============================================================================

MediaPipe Pose 33개 landmark 를 15개 Joint 로 매핑:
- HEAD: nose
- NECK: 두 어깨 중점
- SHOULDER / ELBOW / HIP / KNEE: 같은 이름의 landmark
- HAND: wrist
- FOOT: ankle
- TORSO: 어깨 중점과 엉덩이 중점의 중점

좌표 변환 (world landmark, m 단위):
- mm 로 스케일 (× world_scale)
- (x, -y, -z): y 를 위쪽으로, 오른손 좌표계 유지
- 방향(orientation) 정보가 없으므로 identity, 신뢰도 0

CSV 형식 (한 줄 = 한 프레임의 한 관절):
    frame_index, frame_rate, joint, x, y, z, confidence
joint 는 Joint 이름 (예: LEFT_HAND) 또는 번호.
"""

from typing import Dict, List

import numpy as np
import pandas as pd

import config
from core.joints import Joint, JointFrameInput

# MediaPipe Pose landmark 인덱스
LANDMARK_INDEX = {
    'nose': 0,
    'left_shoulder': 11,
    'right_shoulder': 12,
    'left_elbow': 13,
    'right_elbow': 14,
    'left_wrist': 15,
    'right_wrist': 16,
    'left_hip': 23,
    'right_hip': 24,
    'left_knee': 25,
    'right_knee': 26,
    'left_ankle': 27,
    'right_ankle': 28,
}

# landmark 하나로 바로 대응되는 관절
DIRECT_JOINTS = {
    Joint.HEAD: 'nose',
    Joint.LEFT_SHOULDER: 'left_shoulder',
    Joint.LEFT_ELBOW: 'left_elbow',
    Joint.LEFT_HAND: 'left_wrist',
    Joint.RIGHT_SHOULDER: 'right_shoulder',
    Joint.RIGHT_ELBOW: 'right_elbow',
    Joint.RIGHT_HAND: 'right_wrist',
    Joint.LEFT_HIP: 'left_hip',
    Joint.LEFT_KNEE: 'left_knee',
    Joint.LEFT_FOOT: 'left_ankle',
    Joint.RIGHT_HIP: 'right_hip',
    Joint.RIGHT_KNEE: 'right_knee',
    Joint.RIGHT_FOOT: 'right_ankle',
}

CSV_COLUMNS = ['frame_index', 'frame_rate', 'joint', 'x', 'y', 'z', 'confidence']


def to_sensor_coordinates(world_landmarks: np.ndarray,
                          scale: float = config.MEDIAPIPE_CONFIG['world_scale']) -> np.ndarray:
    """
    MediaPipe world 좌표 (m, y 아래쪽) → 센서 좌표 (mm, y 위쪽)

    Args:
        world_landmarks: (33, 3)

    Returns:
        np.ndarray: (33, 3)
    """
    points = np.asarray(world_landmarks, dtype=float) * scale
    return points * np.array([1.0, -1.0, -1.0])


def landmarks_to_frame_input(world_landmarks: np.ndarray,
                             visibility: np.ndarray,
                             frame_index: int,
                             frame_rate: float,
                             scale: float = config.MEDIAPIPE_CONFIG['world_scale']) -> JointFrameInput:
    """
    MediaPipe landmark 한 프레임 → JointFrameInput

    Args:
        world_landmarks: (33, 3) world 좌표 (m)
        visibility: (33,) visibility 점수 (관절 신뢰도로 사용)
        frame_index: 프레임 번호
        frame_rate: 초당 프레임 수

    Returns:
        JointFrameInput
    """
    points = to_sensor_coordinates(world_landmarks, scale)
    visibility = np.asarray(visibility, dtype=float)

    def point(name):
        return points[LANDMARK_INDEX[name]]

    def vis(name):
        return float(visibility[LANDMARK_INDEX[name]])

    positions: Dict[Joint, np.ndarray] = {}
    confidences: Dict[Joint, float] = {}
    for joint, name in DIRECT_JOINTS.items():
        positions[joint] = point(name)
        confidences[joint] = vis(name)

    # 합성 관절: 구성 landmark 중 가장 낮은 visibility 를 신뢰도로 사용
    mid_shoulder = (point('left_shoulder') + point('right_shoulder')) / 2
    mid_hip = (point('left_hip') + point('right_hip')) / 2
    positions[Joint.NECK] = mid_shoulder
    confidences[Joint.NECK] = min(vis('left_shoulder'), vis('right_shoulder'))
    positions[Joint.TORSO] = (mid_shoulder + mid_hip) / 2
    confidences[Joint.TORSO] = min(vis('left_shoulder'), vis('right_shoulder'),
                                   vis('left_hip'), vis('right_hip'))

    return JointFrameInput(
        frame_index=frame_index,
        frame_rate=frame_rate,
        positions=positions,
        confidences=confidences
    )


def load_frames_csv(csv_path: str) -> List[JointFrameInput]:
    """
    기록된 관절 CSV 를 프레임 순서대로 읽기

    Args:
        csv_path: CSV 파일 경로 (CSV_COLUMNS 형식)

    Returns:
        List[JointFrameInput]: frame_index 오름차순

    Raises:
        ValueError: 필요한 컬럼이 없거나 알 수 없는 관절 이름
    """
    df = pd.read_csv(csv_path)
    missing = [col for col in CSV_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"{csv_path}: missing columns {missing}")

    frames = []
    for frame_index, group in df.groupby('frame_index', sort=True):
        positions = {}
        confidences = {}
        for row in group.itertuples(index=False):
            joint = Joint.coerce(row.joint if isinstance(row.joint, str) else int(row.joint))
            if joint is None:
                raise ValueError(f"{csv_path}: unknown joint {row.joint!r} at frame {frame_index}")
            positions[joint] = np.array([row.x, row.y, row.z], dtype=float)
            confidences[joint] = float(row.confidence)
        frames.append(JointFrameInput(
            frame_index=int(frame_index),
            frame_rate=float(group['frame_rate'].iloc[0]),
            positions=positions,
            confidences=confidences
        ))
    return frames


def frames_to_dataframe(frames: List[JointFrameInput]) -> pd.DataFrame:
    """load_frames_csv 의 역방향 (기록 저장용)"""
    rows = []
    for frame in frames:
        for joint, position in frame.positions.items():
            rows.append({
                'frame_index': frame.frame_index,
                'frame_rate': frame.frame_rate,
                'joint': Joint(joint).name,
                'x': float(position[0]),
                'y': float(position[1]),
                'z': float(position[2]),
                'confidence': float(frame.confidences.get(joint, 0.0)),
            })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)
