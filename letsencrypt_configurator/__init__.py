"""Let's Encrypt + nginx configurator for Debian/Ubuntu servers."""

APP_NAME: str = "LE Configurator"
VERSION: str = "1.0.0"

__all__ = ["APP_NAME", "VERSION"]
