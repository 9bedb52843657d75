"""nousflash - autonomous social agent with layered memory."""

__version__ = "0.1.0"

from nousflash.core.models import CycleResult, CycleStatus, Memory, ShortTermEntry

__all__ = ["Memory", "ShortTermEntry", "CycleResult", "CycleStatus"]
