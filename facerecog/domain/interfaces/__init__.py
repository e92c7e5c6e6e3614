"""Domain interfaces."""
from .camera.camera import Camera, CameraStream
from .recognition.model_service import ModelService
from .storage.gallery_store import GalleryStore

__all__ = ["Camera", "CameraStream", "GalleryStore", "ModelService"]
