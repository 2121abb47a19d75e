# visualization/__init__.py
"""
Visualization modules
"""

from .trajectory_plotter import TrajectoryPlotter

__all__ = ['TrajectoryPlotter']
