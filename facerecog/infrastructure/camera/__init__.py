"""Camera implementations."""
from facerecog.infrastructure.camera.opencv_camera import OpenCVCamera, OpenCVCameraStream

__all__ = ["OpenCVCamera", "OpenCVCameraStream"]
