"""Social platform clients."""

from nousflash.social.x_client import XClient

__all__ = ["XClient"]
