# core/__init__.py
"""
Core modules for joint storage, local coordinate system and mirroring
"""

from .joints import Joint, JointFrameInput, JointSample, JointStore
from .coordinate_system import FrameBuilder, LocalFrame
from .body_planes import BodyPlane, BodyPlaneEngine, BodyPlanes
from .mirror import MirrorEngine, MirrorMode
from .exceptions import DegenerateFrameError, SkeletonGeometryError

__all__ = [
    'Joint', 'JointFrameInput', 'JointSample', 'JointStore',
    'FrameBuilder', 'LocalFrame',
    'BodyPlane', 'BodyPlaneEngine', 'BodyPlanes',
    'MirrorEngine', 'MirrorMode',
    'DegenerateFrameError', 'SkeletonGeometryError'
]
