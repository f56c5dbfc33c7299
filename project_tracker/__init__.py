"""
Top-level package for the Project Tracker service layer.

All functionality lives in submodules under ``app``; the most common
entry points are re-exported here.
"""

from .app.main import Services, create_services

__all__ = ["Services", "create_services"]
