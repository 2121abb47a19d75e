# analysis/__init__.py
"""
Analysis modules for posture, gesture and movement statistics
"""

from .posture_classifier import PostureClassifier, PostureShape, ClinicalAngleKind
from .gesture_recognizer import GestureRecognizer, GestureKind
from .statistics_tracker import StatisticsTracker, StatisticsSnapshot
from .statistics_log import StatisticsLog

__all__ = [
    'PostureClassifier', 'PostureShape', 'ClinicalAngleKind',
    'GestureRecognizer', 'GestureKind',
    'StatisticsTracker', 'StatisticsSnapshot',
    'StatisticsLog'
]
