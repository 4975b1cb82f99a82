"""
Libras Interpreter
==================

Real-time Brazilian Sign Language (Libras) interpretation from a webcam.

Modules:
    - core: pipeline loop, shared types, events, errors
    - capture: camera frame source
    - detection: MediaPipe hand landmarks and finger geometry
    - recognition: feature encoding and the sign classifier
    - visualization: drawing surface and hand skeleton renderer
    - utils: configuration, logging, performance monitoring
"""

__version__ = "1.0.0"
