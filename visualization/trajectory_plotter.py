# visualization/trajectory_plotter.py
"""
=============================================================================
손/팔꿈치 궤적 그래프
=============================================================================

StatisticsSnapshot 의 history (local 좌표) 와 프레임 로그를 시각화합니다.

주요 그래프:
1. 궤적: 정면 (x-y) / 옆면 (z-y) 투영
2. 속도 시계열: 프레임 로그의 velocity 컬럼
3. 최대 각도 막대 그래프: 세션 요약

라이브러리:
- matplotlib: 그래프 그리기
- seaborn: 스타일링

활용:
>>> plotter = TrajectoryPlotter()
>>> plotter.plot_trajectories(skeleton.statistics.snapshot(), save_path="output/plots/trajectory.png")
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

import config
from analysis.statistics_tracker import JOINT_ABBREVIATIONS, StatisticsSnapshot
from core.joints import Joint


class TrajectoryPlotter:
    """
    통계 시각화 클래스

    왼쪽 관절은 left_color, 오른쪽 관절은 right_color 로 그림.
    손은 실선, 팔꿈치는 점선.
    """

    def __init__(self,
                 figsize: tuple = config.VISUALIZATION_CONFIG['figure_size'],
                 dpi: int = config.VISUALIZATION_CONFIG['dpi']):
        self.figsize = figsize
        self.dpi = dpi
        self.colors = {
            Joint.LEFT_HAND: config.VISUALIZATION_CONFIG['left_color'],
            Joint.LEFT_ELBOW: config.VISUALIZATION_CONFIG['left_color'],
            Joint.RIGHT_HAND: config.VISUALIZATION_CONFIG['right_color'],
            Joint.RIGHT_ELBOW: config.VISUALIZATION_CONFIG['right_color'],
        }
        self.linestyles = {
            Joint.LEFT_HAND: '-',
            Joint.RIGHT_HAND: '-',
            Joint.LEFT_ELBOW: '--',
            Joint.RIGHT_ELBOW: '--',
        }

        sns.set_style("whitegrid")

    def _finish(self, fig, save_path: Optional[str]) -> None:
        fig.tight_layout()
        if save_path:
            fig.savefig(save_path, dpi=self.dpi, bbox_inches='tight')
            print(f"Saved plot to {save_path}")
        else:
            plt.show()
        plt.close(fig)

    def plot_trajectories(self, snapshot: StatisticsSnapshot, save_path: Optional[str] = None) -> None:
        """
        local 좌표 궤적 (정면 x-y, 옆면 z-y)

        Args:
            snapshot: StatisticsTracker.snapshot() 결과
            save_path: 저장 경로 (None이면 화면에 표시)
        """
        # STEP 1: 그래프 생성 (정면 / 옆면)
        fig, (ax_front, ax_side) = plt.subplots(1, 2, figsize=self.figsize, dpi=self.dpi)

        # STEP 2: 관절별 궤적
        for joint, limb in snapshot.limbs.items():
            if not limb.history:
                continue
            points = np.vstack(limb.history)
            label = JOINT_ABBREVIATIONS[joint]
            style = dict(color=self.colors[joint], linestyle=self.linestyles[joint], alpha=0.8, label=label)
            ax_front.plot(points[:, 0], points[:, 1], **style)
            ax_side.plot(points[:, 2], points[:, 1], **style)

        # STEP 3: 축 라벨 (앞쪽 = -Z)
        ax_front.set_xlabel('x (mm)')
        ax_front.set_ylabel('y (mm)')
        ax_front.set_title('Frontal view', fontweight='bold')
        ax_side.set_xlabel('z (mm, forward = -z)')
        ax_side.set_ylabel('y (mm)')
        ax_side.set_title('Sagittal view', fontweight='bold')
        for ax in (ax_front, ax_side):
            ax.set_aspect('equal', adjustable='datalim')
            ax.legend(loc='best', fontsize=10)

        self._finish(fig, save_path)

    def plot_velocities(self, frame_log: pd.DataFrame, save_path: Optional[str] = None) -> None:
        """
        속도 시계열

        Args:
            frame_log: StatisticsLog.frames_dataframe() (Second, velocityLH.. 컬럼)
        """
        fig, ax = plt.subplots(figsize=self.figsize, dpi=self.dpi)

        for joint, abbreviation in JOINT_ABBREVIATIONS.items():
            column = f'velocity{abbreviation}'
            if column not in frame_log:
                continue
            ax.plot(frame_log['Second'], frame_log[column],
                    color=self.colors[joint], linestyle=self.linestyles[joint],
                    linewidth=1.5, alpha=0.8, label=abbreviation)

        ax.set_xlabel('Time (s)', fontsize=12)
        ax.set_ylabel('Velocity (mm/s)', fontsize=12)
        ax.set_title('Hand / Elbow Velocity', fontsize=14, fontweight='bold')
        ax.legend(loc='best', fontsize=10)

        self._finish(fig, save_path)

    def plot_max_angles(self, snapshot: StatisticsSnapshot, save_path: Optional[str] = None) -> None:
        """최대 각도 막대 그래프 (팔 굽힘 / 팔 올림 / 임상 각도)"""
        values = {
            'LeftLowerArm': snapshot.max_angle_left_lower_arm,
            'LeftUpperArm': snapshot.max_angle_left_upper_arm,
            'RightLowerArm': snapshot.max_angle_right_lower_arm,
            'RightUpperArm': snapshot.max_angle_right_upper_arm,
        }
        values.update(snapshot.max_clinical_angles)

        fig, ax = plt.subplots(figsize=self.figsize, dpi=self.dpi)
        names = list(values.keys())
        colors = [config.VISUALIZATION_CONFIG['left_color'] if 'Left' in name
                  else config.VISUALIZATION_CONFIG['right_color'] for name in names]
        ax.barh(names, list(values.values()), color=colors, alpha=0.7)
        ax.set_xlabel('Angle (degrees)', fontsize=12)
        ax.set_title('Maximum Angles', fontsize=14, fontweight='bold')
        ax.set_xlim(0, 180)

        self._finish(fig, save_path)
