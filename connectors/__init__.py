"""
connectors — OAuth connection management for external service providers.

Provides a generic provider framework that handles:
  • OAuth1 request tokens and OAuth2 authorization URLs
  • Callback handling (request token / code → access token exchange)
  • Per-account connection storage, Fernet-encrypted at rest
  • Typed API clients resolved from stored connections
  • Disconnect

Each provider (GitHub, Gowalla, Twitter, …) is a ``ServiceProvider`` built
from a config, an exchanger, a URL builder, a store and a client factory.
"""
