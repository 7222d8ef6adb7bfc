"""
Core application engine for orchestrating playlist downloads.

This package contains the primary logic. The `Workflow` is the per-playlist
state machine (attach, download, combine); the `WorkflowManager` keeps the
workflows of a session apart, and the `DownloadManager` drives a whole CLI
session across many playlist URLs.
"""
