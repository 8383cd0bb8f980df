"""
Media Layer.

This package is responsible for all media file operations: downloading the
output files of a job and reading finished stem folders.
"""

from .downloader import DownloadCoordinator
from .stems import StemFolder, scan_stem_folder

__all__ = ["DownloadCoordinator", "StemFolder", "scan_stem_folder"]
