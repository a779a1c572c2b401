from __future__ import annotations

from typing import Callable, Dict, Optional

from matrix_live.config import Settings, get_settings
from matrix_live.providers.base import MessageProvider
from matrix_live.providers.gaggle import GaggleProvider

# PROVIDER value (upper-cased) -> factory taking the app settings
PROVIDERS: Dict[str, Callable[[Settings], MessageProvider]] = {
    "GAGGLE": GaggleProvider,
}


def get_provider(settings: Optional[Settings] = None) -> MessageProvider:
    """
    Builds the mail provider named by settings.provider.
    Unknown names raise ValueError listing what is registered.
    """
    settings = settings or get_settings()
    factory = PROVIDERS.get(settings.provider.strip().upper())
    if factory is None:
        known = ", ".join(sorted(PROVIDERS))
        raise ValueError(f"Unknown PROVIDER={settings.provider!r}. Expected one of: {known}")
    return factory(settings)
