"""
framecast
=========

Serves decoded video frames as flat RGB pixel arrays over HTTP at a
fixed low resolution and frame rate.

A video source (local file or URL) is decoded one frame at a time by
an external ffmpeg process, paced at the target rate. The latest frame
is kept ready for near-zero-latency reads, and decoding recovers on
its own from source and subprocess failures.

Components:
    - decode: ffmpeg frame decoder, rgb24 codec, startup source prober
    - pacing: frame cursor, frame cache, failure policy, pacing controller
    - pattern: procedural fallback imagery
    - main: FastAPI application

Example:
    from framecast.config import settings
    from framecast.main import create_app

    app = create_app(settings)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
