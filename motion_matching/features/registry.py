"""
Registry of concrete feature provider types.
Lets bake configurations name providers by type instead of importing them.
"""

from typing import Any, Dict, List, Type
from .provider import IFeatureProvider


class FeatureRegistry:
    """
    Registry mapping provider type names to provider classes.
    Construction goes through create() so unknown names fail loudly.
    """

    def __init__(self):
        self.providers: Dict[str, Type[IFeatureProvider]] = {}

    def register(self, type_name: str, provider_cls: Type[IFeatureProvider]) -> None:
        """
        Register a provider class under a type name.

        Args:
            type_name: Name used in bake configurations
            provider_cls: Concrete IFeatureProvider subclass
        """
        if not isinstance(provider_cls, type) or not issubclass(provider_cls, IFeatureProvider):
            raise TypeError(f"{provider_cls!r} is not an IFeatureProvider subclass")
        if type_name in self.providers and self.providers[type_name] is not provider_cls:
            raise ValueError(f"Feature type '{type_name}' already registered")
        self.providers[type_name] = provider_cls

    def create(self, type_name: str, **params: Any) -> IFeatureProvider:
        """
        Instantiate a registered provider.

        Args:
            type_name: Registered type name
            **params: Keyword arguments for the provider constructor

        Returns:
            New provider instance
        """
        provider_cls = self.providers.get(type_name)
        if provider_cls is None:
            raise KeyError(f"Unknown feature type '{type_name}'. Known: {sorted(self.providers)}")
        return provider_cls(**params)

    def create_all(self, specs: List[Dict[str, Any]]) -> List[IFeatureProvider]:
        """Instantiate providers from a list of ``{"type": ..., **params}`` dicts."""
        providers = []
        for spec in specs:
            params = dict(spec)
            type_name = params.pop("type")
            providers.append(self.create(type_name, **params))
        return providers

    def list_types(self) -> List[str]:
        return sorted(self.providers)


# Global registry instance
registry = FeatureRegistry()


def register_feature(type_name: str):
    """Class decorator registering a provider in the global registry."""
    def decorator(provider_cls):
        registry.register(type_name, provider_cls)
        return provider_cls
    return decorator
