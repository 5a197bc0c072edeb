import importlib
import inspect
import os
import pkgutil
from typing import Dict, List, Type

import aiohttp

from oni.core.exceptions import UnknownProviderError
from oni.core.logger import logger
from oni.providers.base import BaseProvider
from oni.providers.cache import ProviderCache

NON_PROVIDER_MODULES = ["base", "manager", "models", "cache"]


class ProviderManager:
    def __init__(self):
        self.providers: Dict[str, Type[BaseProvider]] = {}
        self.discover_providers()

    def discover_providers(self):
        """
        Dynamically discover and load provider classes from the providers directory.
        """
        package = "oni.providers"
        path = os.path.dirname(__file__)

        for _, name, is_package in pkgutil.iter_modules([path]):
            if is_package or name in NON_PROVIDER_MODULES:
                continue

            module = importlib.import_module(f"{package}.{name}")

            # Find classes inheriting from BaseProvider
            for _, obj in inspect.getmembers(module):
                if (
                    inspect.isclass(obj)
                    and issubclass(obj, BaseProvider)
                    and obj is not BaseProvider
                    and obj.name
                ):
                    self.providers[obj.name] = obj

    def names(self) -> List[str]:
        return sorted(self.providers)

    def get_provider(
        self, name: str, session: aiohttp.ClientSession, cache: ProviderCache
    ) -> BaseProvider:
        key = (name or "").strip().lower()
        provider_class = self.providers.get(key)
        if provider_class is None:
            logger.error(f"Unknown provider: {name}")
            raise UnknownProviderError(name, self.names())

        logger.log("PROVIDER", f"Using {provider_class.__name__} provider")
        return provider_class(session, cache)


provider_manager = ProviderManager()


def get_provider(
    name: str, session: aiohttp.ClientSession, cache: ProviderCache
) -> BaseProvider:
    return provider_manager.get_provider(name, session, cache)
