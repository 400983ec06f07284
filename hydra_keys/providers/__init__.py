"""Provider adapters — built-ins and the shared adapter contract."""

from hydra_keys.providers.base import (
    MASKED_KEY,
    CreateKeyOptions,
    HttpProvider,
    KeyDeleter,
    KeyDetails,
    KeyInspector,
    KeyResult,
    KeyUsage,
    Provider,
    ProviderConfig,
    ProviderSetting,
    ValidationResult,
)
from hydra_keys.providers.convex import ConvexProvider
from hydra_keys.providers.neon import NeonProvider
from hydra_keys.providers.openrouter import OpenRouterProvider

BUILTIN_PROVIDERS: tuple[type[HttpProvider], ...] = (
    OpenRouterProvider,
    ConvexProvider,
    NeonProvider,
)

__all__ = [
    "BUILTIN_PROVIDERS",
    "MASKED_KEY",
    "ConvexProvider",
    "CreateKeyOptions",
    "HttpProvider",
    "KeyDeleter",
    "KeyDetails",
    "KeyInspector",
    "KeyResult",
    "KeyUsage",
    "NeonProvider",
    "OpenRouterProvider",
    "Provider",
    "ProviderConfig",
    "ProviderSetting",
    "ValidationResult",
]
