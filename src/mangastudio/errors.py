from __future__ import annotations

from typing import Dict


class MangaStudioError(Exception):
    pass


class ValidationError(MangaStudioError):
    pass


class CodecError(MangaStudioError, ValueError):
    pass


class IntakeError(MangaStudioError):
    pass


class StorageError(MangaStudioError):
    pass


class StorageQuotaError(StorageError):
    pass


class MissingApiKeyError(MangaStudioError):
    def __init__(self) -> None:
        super().__init__("API key is not configured. Set the GEMINI_API_KEY environment variable.")


class RemoteCallError(MangaStudioError):
    pass


class SafetyBlockedError(RemoteCallError):
    pass


class PolicyBlockedError(RemoteCallError):
    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class NoCandidateError(RemoteCallError):
    pass


class TextOnlyResponseError(RemoteCallError):
    def __init__(self, message: str, text: str) -> None:
        super().__init__(message)
        self.text = text


class MissingImageError(RemoteCallError):
    pass


class DetectionError(RemoteCallError):
    def __init__(self, message: str = "Could not detect speech bubbles in the image.") -> None:
        super().__init__(message)


# User-facing messages for the two image-producing capabilities. They share a
# taxonomy but word it for the action the user took.
GENERATE_MESSAGES: Dict[str, str] = {
    "safety": "Your request was blocked by the safety policy. Try different images or instructions.",
    "policy": "Image generation was blocked with reason: {reason}. Please adjust your request.",
    "no_candidate": "The AI could not produce a result. Try again with different images or instructions.",
    "text_only": 'The AI did not return an image and replied with text instead: "{text}"',
    "no_image": "The AI did not return an image as expected. Please try again.",
    "unknown": "An unknown error occurred while generating the manga.",
}

EDIT_MESSAGES: Dict[str, str] = {
    "safety": "Your edit request was blocked by the safety policy.",
    "policy": "Image editing was blocked with reason: {reason}.",
    "no_candidate": "The AI could not edit the image. Please try again.",
    "text_only": 'The AI did not return an edited image and replied with text instead: "{text}"',
    "no_image": "The AI did not return the edited image as expected.",
    "unknown": "An unknown error occurred while editing the text in the image.",
}
