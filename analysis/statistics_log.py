# analysis/statistics_log.py
"""
=============================================================================
통계 로그 CSV 저장
=============================================================================

StatisticsTracker 의 프레임 행 / 요약 행을 모아 CSV 로 저장합니다.

파일 구성:
    Second,velocityLH,...,zRE      ← 프레임 로그 헤더
    0.0,...                        ← 프레임마다 한 줄
    (빈 줄)
    time,distanceLH,...            ← 요약 헤더
    12.3,...                       ← 세션 요약 한 줄

라이브러리:
- pandas: DataFrame → CSV
"""

import logging
from io import StringIO
from pathlib import Path
from typing import List, Optional

import pandas as pd

import config
from analysis.statistics_tracker import FRAME_COLUMNS, SUMMARY_COLUMNS, StatisticsTracker

logger = logging.getLogger(__name__)


class StatisticsLog:
    """
    프레임별 통계 행 수집 + CSV 저장

    활용:
        >>> log = StatisticsLog()
        >>> for frame in frames:
        >>>     skeleton.update(frame)
        >>>     log.record(skeleton.statistics)
        >>> log.save("output/data/statistics_log.csv", skeleton.statistics)
    """

    def __init__(self, float_format: str = config.OUTPUT_CONFIG['float_format']):
        self.float_format = float_format
        self.rows: List[dict] = []

    def __len__(self) -> int:
        return len(self.rows)

    def record(self, tracker: StatisticsTracker) -> None:
        """현재 프레임의 통계 한 줄 추가"""
        self.rows.append(tracker.frame_row())

    def frames_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=FRAME_COLUMNS)

    @staticmethod
    def summary_dataframe(tracker: StatisticsTracker) -> pd.DataFrame:
        return pd.DataFrame([tracker.summary_row()], columns=SUMMARY_COLUMNS)

    def save(self, path: str, tracker: Optional[StatisticsTracker] = None) -> Path:
        """
        CSV 저장

        Args:
            path: 저장 경로 (상위 디렉토리는 자동 생성)
            tracker: 주어지면 파일 끝에 요약 블록 추가

        Returns:
            Path: 저장된 파일 경로
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        # STEP 1: 프레임 로그
        self.frames_dataframe().to_csv(path, index=False, float_format=self.float_format)

        # STEP 2: 요약 블록 (빈 줄 뒤)
        if tracker is not None:
            with open(path, 'a', encoding='utf-8', newline='') as f:
                f.write('\n')
                self.summary_dataframe(tracker).to_csv(f, index=False, float_format=self.float_format)

        logger.info("statistics log written to %s (%d frames)", path, len(self.rows))
        return path


def read_frame_log(path: str) -> pd.DataFrame:
    """
    저장된 로그에서 프레임 부분만 읽기

    요약 블록은 빈 줄 뒤에 오므로 첫 빈 줄 전까지만 파싱.
    """
    with open(path, encoding='utf-8') as f:
        lines = []
        for line in f:
            if not line.strip():
                break
            lines.append(line)
    return pd.read_csv(StringIO(''.join(lines)))
