"""Utility helpers shared by the audio and speech packages.

Submodules:
    logging          – setup_logging(), JsonFormatter and log_execution_time.
"""
