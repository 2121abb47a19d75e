# utils/__init__.py
"""
Utility modules
"""

from .math_utils import (
    UNIT_X,
    UNIT_Y,
    UNIT_Z,
    angle_between_vectors,
    is_value_between,
    project_onto_plane,
    distance
)

__all__ = [
    'UNIT_X',
    'UNIT_Y',
    'UNIT_Z',
    'angle_between_vectors',
    'is_value_between',
    'project_onto_plane',
    'distance'
]
