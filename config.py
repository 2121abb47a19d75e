# config.py
"""
Therapeutic Skeleton Analysis - Configuration
"""

# 좌표계/기하 설정
GEOMETRY_CONFIG = {
    'epsilon': 1e-6,           # 이보다 짧은 축 벡터는 degenerate 로 취급
    # torso 가 어깨선 위에 있어 Y축을 못 구할 때 쓰는 센서 기준 위쪽 방향
    'fallback_up': (0.0, 1.0, 0.0),
}

# 자세(Posture) 분류 설정
POSTURE_CONFIG = {
    'tolerance': 0.3,              # 0..1, 범위 밖이면 기본값으로 되돌림
    'reference_angle': 20.0,       # tolerance angle = tolerance * reference_angle (degrees)
    'hand_distance': 100.0,        # O shape: 두 손 사이 최대 거리 (mm)
}

# 제스처(Gesture) 인식 설정
GESTURE_CONFIG = {
    'tolerance': 0.5,
    'reference_angle': 40.0,
    'push_gesture_max_frames': 30,     # push 시작 자세 이후 끝 자세까지 허용 프레임 수
    'hand_shoulder_distance': 200.0,   # 시작 자세: 손-어깨 최대 거리 (mm)
}

# 통계(Statistics) 설정
STATISTICS_CONFIG = {
    # None = history 무제한, 양수 = ring buffer 크기
    'history_size': None,
    'default_frame_rate': 30.0,
}

# MediaPipe 설정 (pose_extractor 에서 사용)
MEDIAPIPE_CONFIG = {
    'model_complexity': 2,  # 0, 1, 2 (높을수록 정확하지만 느림)
    'min_detection_confidence': 0.5,
    'min_tracking_confidence': 0.5,
    'enable_segmentation': False,
    'smooth_landmarks': True,
    'world_scale': 1000.0,  # world landmarks (m) -> mm
}

# 출력 설정
OUTPUT_CONFIG = {
    'output_dir': 'output',
    'save_log': True,
    'save_plots': True,
    'log_filename': 'statistics_log.csv',
    'float_format': '%.4f',
}

# 시각화 설정
VISUALIZATION_CONFIG = {
    'left_color': 'tab:blue',
    'right_color': 'tab:red',
    'figure_size': (12, 8),
    'dpi': 100,
}

# 로깅 설정
LOGGING_CONFIG = {
    'level': 'INFO',
    'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
}
