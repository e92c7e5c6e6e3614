"""Custom exceptions for the face recognition demo."""
from typing import Optional

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class FaceRecognitionError(Exception):
    """Base exception for face recognition operations."""

    user_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face recognition error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class ModelLoadError(FaceRecognitionError):
    """Raised when the face recognition model fails to load."""
    user_message = "Failed to load face recognition models."


class CameraAccessError(FaceRecognitionError):
    """Raised when the camera cannot be opened."""
    user_message = "Failed to access camera."


class FrameProcessingError(FaceRecognitionError):
    """Raised when a single recognition cycle cannot capture or process a frame."""
    pass


class InvalidEmbeddingError(FaceRecognitionError):
    """Raised when an embedding does not match the gallery's dimensionality."""
    pass


class PersistenceError(FaceRecognitionError):
    """Raised when the gallery store cannot read or write a blob."""
    user_message = "Could not save data. Please try again."


class RegistrationError(FaceRecognitionError):
    """Base exception for registration failures."""
    user_message = "Registration failed. Please try again."


class ValidationError(RegistrationError):
    """Raised when registration input is missing or blank."""
    user_message = "Please fill all fields and upload an image."


class InvalidImageError(RegistrationError):
    """Raised when the provided image is invalid or cannot be processed."""
    user_message = "The uploaded file is not a readable image. Please try another photo."


class NoFaceDetectedError(RegistrationError):
    """Raised when no face is detected in the image."""
    user_message = "No face detected in the image. Please try another photo."


def user_message_for(error: BaseException) -> str:
    """Short, actionable message for an error; unexpected errors get a generic one."""
    if isinstance(error, FaceRecognitionError):
        return error.user_message
    return GENERIC_ERROR_MESSAGE
