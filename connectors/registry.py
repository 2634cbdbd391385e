"""
ConnectorRegistry — discovers and provides access to all service providers.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, NamedTuple, Optional

from connectors import github, gowalla, twitter
from connectors.provider import ServiceProvider
from connectors.store import ConnectionStore

logger = logging.getLogger(__name__)


class _Binding(NamedTuple):
    name: str
    is_configured: Callable[[], bool]
    build: Callable[[ConnectionStore], ServiceProvider]


# ── All known providers: add new ones here ───────────────────────────────

_ALL_PROVIDERS: List[_Binding] = [
    _Binding("github", github.is_configured, github.build_github_provider),
    _Binding("gowalla", gowalla.is_configured, gowalla.build_gowalla_provider),
    _Binding("twitter", twitter.is_configured, twitter.build_twitter_provider),
]


class ConnectorRegistry:
    """Singleton registry of service providers sharing one connection store."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._providers = {}
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def discover(self, store: ConnectionStore) -> None:
        """Build and register every configured provider."""
        if self._discovered:
            return
        for binding in _ALL_PROVIDERS:
            if binding.is_configured():
                provider = binding.build(store)
                self.register(provider)
            else:
                logger.warning(
                    "Provider %s skipped: not configured (missing key/secret)", binding.name
                )
        self._discovered = True

    def register(self, provider: ServiceProvider) -> None:
        self._providers[provider.name] = provider
        logger.info(
            "Provider registered: %s (%s, OAuth %s)",
            provider.display_name,
            provider.name,
            provider.oauth_version.value,
        )

    def get(self, name: str) -> Optional[ServiceProvider]:
        """Get a provider by name."""
        return self._providers.get(name)

    def providers(self) -> List[ServiceProvider]:
        return list(self._providers.values())

    def list_providers(self) -> List[Dict[str, str]]:
        """Return display info about all registered providers."""
        return [
            {
                "provider": p.name,
                "display_name": p.display_name,
                "icon": p.icon,
                "oauth_version": p.oauth_version.value,
            }
            for p in self._providers.values()
        ]

    def list_configured(self) -> List[str]:
        """Return names of registered providers."""
        return list(self._providers.keys())
