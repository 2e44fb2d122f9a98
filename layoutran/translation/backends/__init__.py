"""Translation backend implementations and registry."""

from typing import Dict, List, Optional, Type

from ...core.exceptions import ConfigurationError
from ..base import TranslationBackend
from .free_backend import FreeBackend
from .libre_backend import LibreTranslateBackend

BACKENDS: Dict[str, Type[TranslationBackend]] = {
    "free": FreeBackend,
    "libre": LibreTranslateBackend,
}


def available_backends() -> List[str]:
    return sorted(BACKENDS)


def create_backend(name: str, api_key: Optional[str] = None,
                   endpoint: Optional[str] = None) -> TranslationBackend:
    """
    Instantiate a backend by name.

    Raises:
        ConfigurationError: unknown backend name
    """
    key = (name or "").lower()
    if key not in BACKENDS:
        raise ConfigurationError(f"Unknown translation backend: {name}", config_key="backend",
                                 invalid_value=name, valid_values=available_backends())
    if key == "libre":
        return LibreTranslateBackend(api_key=api_key, endpoint=endpoint)
    return BACKENDS[key](api_key=api_key)


__all__ = [
    'FreeBackend',
    'LibreTranslateBackend',
    'BACKENDS',
    'available_backends',
    'create_backend',
]
