"""
IdScan Services Layer

Business logic services that orchestrate scan creation, live
synchronization and scoring.
"""

from .scan import ScanService

__all__ = ["ScanService"]
