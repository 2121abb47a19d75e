# core/pose_extractor.py
"""
MediaPipe를 사용한 관절 프레임 추출
"""

import logging
from typing import List, Optional

import cv2
import mediapipe as mp
import numpy as np
from tqdm import tqdm

import config
from core.frame_sources import landmarks_to_frame_input
from core.joints import JointFrameInput

logger = logging.getLogger(__name__)


class PoseExtractor:
    """
    MediaPipe Pose world landmark → JointFrameInput
    """

    def __init__(self,
                 model_complexity: int = config.MEDIAPIPE_CONFIG['model_complexity'],
                 min_detection_confidence: float = config.MEDIAPIPE_CONFIG['min_detection_confidence'],
                 min_tracking_confidence: float = config.MEDIAPIPE_CONFIG['min_tracking_confidence'],
                 world_scale: float = config.MEDIAPIPE_CONFIG['world_scale']):
        """
        Args:
            model_complexity: 0, 1, 2 (높을수록 정확하지만 느림)
            min_detection_confidence: 최소 감지 신뢰도
            min_tracking_confidence: 최소 추적 신뢰도
            world_scale: world landmark 단위 변환 (m → mm)
        """
        self.world_scale = world_scale
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
            enable_segmentation=config.MEDIAPIPE_CONFIG['enable_segmentation'],
            smooth_landmarks=config.MEDIAPIPE_CONFIG['smooth_landmarks']
        )

    def extract_from_video(self, video_path: str) -> List[JointFrameInput]:
        """
        비디오에서 모든 프레임의 관절 추출

        포즈가 감지되지 않은 프레임은 건너뜀 (frame_index 는 원래 비디오 프레임 번호 유지).

        Args:
            video_path: 비디오 파일 경로

        Returns:
            List[JointFrameInput]: 포즈가 감지된 프레임들
        """
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            raise IOError(f"Cannot open video: {video_path}")
        fps = cap.get(cv2.CAP_PROP_FPS) or config.STATISTICS_CONFIG['default_frame_rate']
        total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))

        frames = []
        frame_number = 0

        print(f"Extracting joints from {video_path}")
        print(f"Total frames: {total_frames}, FPS: {fps}")

        with tqdm(total=total_frames, desc="Processing frames") as pbar:
            while cap.isOpened():
                ret, image = cap.read()
                if not ret:
                    break

                frame_input = self.extract_from_frame(image, frame_number, fps)
                if frame_input is not None:
                    frames.append(frame_input)
                else:
                    logger.debug("no pose detected in frame %d", frame_number)

                frame_number += 1
                pbar.update(1)

        cap.release()

        print(f"Successfully extracted {len(frames)} frames with poses")

        return frames

    def extract_from_frame(self, image: np.ndarray, frame_index: int = 0,
                           frame_rate: float = config.STATISTICS_CONFIG['default_frame_rate']
                           ) -> Optional[JointFrameInput]:
        """
        단일 프레임에서 관절 추출

        Args:
            image: BGR 이미지
            frame_index: 프레임 번호
            frame_rate: 초당 프레임 수

        Returns:
            JointFrameInput or None
        """
        # RGB로 변환 (MediaPipe 요구사항)
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        results = self.pose.process(image_rgb)

        if not (results.pose_landmarks and results.pose_world_landmarks):
            return None

        world_landmarks = np.array([
            [lm.x, lm.y, lm.z]
            for lm in results.pose_world_landmarks.landmark
        ])
        visibility = np.array([
            lm.visibility
            for lm in results.pose_landmarks.landmark
        ])
        return landmarks_to_frame_input(world_landmarks, visibility, frame_index, frame_rate,
                                        scale=self.world_scale)

    def __del__(self):
        """리소스 정리"""
        if hasattr(self, 'pose'):
            self.pose.close()
