from .settings import VeritasorSettings, get_settings

__all__ = ["VeritasorSettings", "get_settings"]
