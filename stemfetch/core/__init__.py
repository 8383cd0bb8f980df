"""
Core application engine for orchestrating a separation run.

The `JobOrchestrator` is the run-level state machine; it delegates uploading to
the `JobSubmitter`, status checks to the `StatusPoller` and file retrieval to
the `DownloadCoordinator`.
"""
