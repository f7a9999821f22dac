"""pocketauth: OAuth logins and credential storage for model providers."""

__version__ = "0.1.0"
