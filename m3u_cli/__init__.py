"""
m3u-cli: a resumable HLS playlist downloader.
"""

__version__ = "0.1.0"
