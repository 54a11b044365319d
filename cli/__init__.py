"""
ReelStudio CLI Tools

- progress_monitor: follow a job's progress stream in the terminal
"""

from .progress_monitor import ProgressMonitor

__all__ = ["ProgressMonitor"]
