from .results import attempt

__all__ = ["attempt"]
