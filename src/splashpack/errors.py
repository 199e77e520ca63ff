"""Exceptions raised by splashpack."""


class SplashpackError(Exception):
    """Base class for all splashpack errors."""


class InvalidConfiguration(SplashpackError, ValueError):
    """Raised when reserved/prohibited regions or framebuffer settings are invalid."""


class PackingOverflow(SplashpackError):
    """Raised when a texture or palette does not fit in the free VRAM space."""


class OffsetTableMismatch(SplashpackError):
    """Raised when placeholder and data offset counts differ during backpatching.

    This always indicates a sequencing bug in the writer, never bad input.
    """


class SceneFormatError(SplashpackError):
    """Raised for malformed scene descriptions or exported files."""


class TextureConversionError(SplashpackError):
    """Raised when a source image cannot be turned into a texture."""
