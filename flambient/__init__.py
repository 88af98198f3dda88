"""
Flambient: exposure blending and resumable remote-editing workflow.

Pipeline:
- classification: EXIF extraction, ambient/flash classification, grouping
- blending: compositing recipe synthesis and engine invocation
- imagen: remote photo-editing API client and polling
- jobs: persisted, resumable job state machine
"""

__version__ = "0.1.0"
