# main.py
"""
=============================================================================
Therapeutic Skeleton Analysis - Main Script
=============================================================================

치료 세션 영상 (또는 기록된 관절 CSV) 의 skeleton 분석 파이프라인

전체 실행 흐름:
1. load_frames(): 비디오 / CSV → JointFrameInput 리스트
2. run_session(): 프레임마다 Skeleton.update() + 통계 로그 수집
3. save_results(): 통계 로그 CSV 저장
4. create_visualizations(): 궤적 / 속도 / 최대 각도 그래프

실행 방법:
    $ python main.py input/session.mp4
    $ python main.py input/session.csv --mirror left

출력:
    output/
    ├── data/statistics_log.csv
    └── plots/*.png

설정 변경:
    - config.py에서 tolerance, MediaPipe 설정, 색상 등 수정 가능
"""

import argparse
import logging
import os
import sys
from collections import Counter
from pathlib import Path

from tqdm import tqdm

import config
from analysis.gesture_recognizer import GestureKind
from analysis.statistics_log import StatisticsLog
from core.frame_sources import load_frames_csv
from core.mirror import MirrorMode
from core.skeleton import Skeleton
from visualization.trajectory_plotter import TrajectoryPlotter

logger = logging.getLogger(__name__)

MIRROR_OPTIONS = {
    'off': MirrorMode.OFF,
    'left': MirrorMode.LEFT_TO_RIGHT,
    'right': MirrorMode.RIGHT_TO_LEFT,
}


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOGGING_CONFIG['level']),
        format=config.LOGGING_CONFIG['format']
    )


def load_frames(input_path: str):
    """
    입력 파일 → JointFrameInput 리스트

    .csv 는 기록된 관절 데이터, 그 외는 비디오로 보고 MediaPipe 로 추출.
    """
    if input_path.lower().endswith('.csv'):
        print(f"Loading recorded joints from {input_path}")
        return load_frames_csv(input_path)

    # MediaPipe 는 비디오 입력일 때만 필요
    from core.pose_extractor import PoseExtractor
    extractor = PoseExtractor(
        model_complexity=config.MEDIAPIPE_CONFIG['model_complexity'],
        min_detection_confidence=config.MEDIAPIPE_CONFIG['min_detection_confidence'],
        min_tracking_confidence=config.MEDIAPIPE_CONFIG['min_tracking_confidence']
    )
    return extractor.extract_from_video(input_path)


def run_session(frames, mirror_mode: MirrorMode = MirrorMode.OFF):
    """
    프레임 순서대로 skeleton 갱신

    Returns:
        tuple: (skeleton, statistics_log, posture_counts, push_count)
    """
    print(f"\n{'='*70}")
    print(f"Running skeleton analysis ({len(frames)} frames, mirror: {mirror_mode.name})")
    print(f"{'='*70}")

    skeleton = Skeleton(mirror_mode=mirror_mode)
    statistics_log = StatisticsLog()
    posture_counts = Counter()
    push_count = 0

    for frame in tqdm(frames, desc="Updating skeleton"):
        state = skeleton.update(frame)
        statistics_log.record(skeleton.statistics)
        posture_counts[state.posture.name] += 1
        if skeleton.last_gesture(0) is GestureKind.PUSH:
            push_count += 1

    return skeleton, statistics_log, posture_counts, push_count


def save_results(skeleton, statistics_log, output_dir=config.OUTPUT_CONFIG['output_dir']):
    data_dir = Path(output_dir) / 'data'
    csv_path = data_dir / config.OUTPUT_CONFIG['log_filename']
    statistics_log.save(str(csv_path), skeleton.statistics)
    print(f"✓ Saved statistics log to {csv_path}")


def create_visualizations(skeleton, statistics_log, output_dir=config.OUTPUT_CONFIG['output_dir']):
    print(f"\n{'='*70}")
    print("Creating Visualizations")
    print(f"{'='*70}\n")

    plots_dir = Path(output_dir) / 'plots'
    plots_dir.mkdir(parents=True, exist_ok=True)

    snapshot = skeleton.statistics.snapshot()
    plotter = TrajectoryPlotter()
    plotter.plot_trajectories(snapshot, save_path=str(plots_dir / 'trajectories.png'))
    plotter.plot_velocities(statistics_log.frames_dataframe(), save_path=str(plots_dir / 'velocities.png'))
    plotter.plot_max_angles(snapshot, save_path=str(plots_dir / 'max_angles.png'))

    print(f"✓ All plots saved to {plots_dir}")


def parse_args(argv=None):
    """
    명령행 인자

    인자:
        input: 입력 파일 (비디오 또는 CSV, 기본 input/session.mp4)
        --mirror off|left|right: mirror therapy 모드
    """
    parser = argparse.ArgumentParser(description='Therapeutic Skeleton Analysis')
    parser.add_argument('input', nargs='?', default='input/session.mp4',
                        help='Path to video file or recorded joint CSV')
    parser.add_argument('--mirror', '-m', choices=sorted(MIRROR_OPTIONS), default='off',
                        help='Mirror therapy mode (left: left arm mirrored onto right)')
    return parser.parse_args(argv)


def main(argv=None):
    """메인 실행 함수"""
    configure_logging()
    args = parse_args(argv)
    mirror_mode = MIRROR_OPTIONS[args.mirror]
    input_path = args.input

    print("\n" + "="*70)
    print("Therapeutic Skeleton Analysis")
    print("="*70)

    if not os.path.exists(input_path):
        print(f"ERROR: Input not found: {input_path}")
        return 1

    # 1. 프레임 입력
    frames = load_frames(input_path)
    if len(frames) == 0:
        print("ERROR: No poses detected in input!")
        return 1

    # 2. 분석
    skeleton, statistics_log, posture_counts, push_count = run_session(frames, mirror_mode)

    # 3. 결과 출력
    summary = skeleton.statistics.summary_row()
    print("\nSession summary:")
    for key, value in summary.items():
        print(f"  {key:24s}: {value:.2f}")
    print("\nPostures:")
    for name, count in posture_counts.most_common():
        print(f"  {name:20s}: {count} frames")
    print(f"\nPush gestures: {push_count}")

    # 4. 저장 + 시각화
    if config.OUTPUT_CONFIG['save_log']:
        save_results(skeleton, statistics_log)
    if config.OUTPUT_CONFIG['save_plots']:
        create_visualizations(skeleton, statistics_log)

    print("\n" + "="*70)
    print("Analysis Complete!")
    print("="*70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
