"""
Camera package.

Canonical imports:
- `from camera.source import create_frame_source`
- `from camera.source import OpenCVFrameSource` (USB, RTSP, video files)
- `from camera.source import StaticFrameSource` (images on disk / arrays)
"""
