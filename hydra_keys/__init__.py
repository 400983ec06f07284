"""hydra-keys — local credential broker for provider API keys."""

__version__ = "0.1.0"
