"""
Record shell sessions into runbooks.
"""

from savvy.record.recorder import Recording, RecordingSession, save_recording

__all__ = ["Recording", "RecordingSession", "save_recording"]
