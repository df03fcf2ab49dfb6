from .base import TapeCassette
from .file import FileTapeCassette
from .memory import InMemoryTapeCassette

__all__ = ["FileTapeCassette", "InMemoryTapeCassette", "TapeCassette"]
