"""Exception types shared by the renderer, the content generator and the HTTP layer."""

from __future__ import annotations


class CarouselError(Exception):
    """Base class for carousel errors."""


class CarouselInputError(CarouselError, ValueError):
    """Raised when the caller hands over structurally invalid input (wrong arity, missing bytes)."""


class LayoutConfigError(CarouselError, RuntimeError):
    """Raised when a layout table yields no candidates. Never expected at runtime."""


class SegmentationError(CarouselError):
    """Raised by the remove.bg call. Callers of extract_subject never see it."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ContentGenerationError(CarouselError):
    """Raised when slide copy could not be generated or failed validation."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class NotionError(CarouselError):
    """Raised when a Notion page cannot be read or written."""

    def __init__(self, message: str, status_code: int | None = None, missing_properties: list[str] | None = None):
        self.status_code = status_code
        self.missing_properties = missing_properties or []
        super().__init__(message)
