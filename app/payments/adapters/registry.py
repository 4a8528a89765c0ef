"""
Provider registry and currency-based selector.

Maps provider names to PaymentProvider instances and ISO currency codes to
provider names. The currency table is static configuration
(PAYMENT_PROVIDER_BY_CURRENCY) and unknown currencies fall back to
PAYMENT_DEFAULT_PROVIDER.

Usage:
    from payments.adapters import ProviderRegistry

    registry = ProviderRegistry.default()
    provider = registry.select("RUB")      # YooKassaProvider
    provider = registry.get("stripe")      # StripeProvider

    # Tests build a registry from fakes
    registry = ProviderRegistry({"stripe": fake}, currency_map={}, default_provider="stripe")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from payments.exceptions import UnknownProviderError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from payments.adapters.base import PaymentProvider


def _provider_factories() -> dict[str, Callable[[], PaymentProvider]]:
    from payments.adapters.network_intl_adapter import NetworkIntlProvider
    from payments.adapters.stripe_adapter import StripeProvider
    from payments.adapters.yookassa_adapter import YooKassaProvider

    return {
        StripeProvider.name: StripeProvider.from_settings,
        YooKassaProvider.name: YooKassaProvider.from_settings,
        NetworkIntlProvider.name: NetworkIntlProvider.from_settings,
    }


class ProviderRegistry:
    """
    Lookup of configured providers.

    Entries may be instances or zero-argument factories; factories are
    resolved on first use and the instance is kept for the registry's
    lifetime.
    """

    def __init__(
        self,
        providers: Mapping[str, PaymentProvider | Callable[[], PaymentProvider]],
        currency_map: Mapping[str, str] | None = None,
        default_provider: str = "stripe",
    ):
        self._entries = dict(providers)
        self._currency_map = {k.upper(): v for k, v in (currency_map or {}).items()}
        self.default_provider = default_provider

    @classmethod
    def default(cls) -> ProviderRegistry:
        """Registry of every built-in provider, configured from settings."""
        return cls(
            _provider_factories(),
            currency_map=settings.PAYMENT_PROVIDER_BY_CURRENCY,
            default_provider=settings.PAYMENT_DEFAULT_PROVIDER,
        )

    @property
    def names(self) -> list[str]:
        return sorted(self._entries)

    def get(self, name: str) -> PaymentProvider:
        """
        Return the provider registered under ``name``.

        Raises:
            UnknownProviderError: If no provider is registered under that name
        """
        try:
            entry = self._entries[name]
        except KeyError:
            raise UnknownProviderError(
                f"Unknown payment provider '{name}'",
                details={"provider": name, "available": self.names},
            ) from None
        if callable(entry) and not hasattr(entry, "create_intent"):
            entry = entry()
            self._entries[name] = entry
        return entry

    def provider_name_for(self, currency: str) -> str:
        """Provider name for a currency; unknown currencies get the default."""
        return self._currency_map.get(currency.upper(), self.default_provider)

    def select(self, currency: str) -> PaymentProvider:
        return self.get(self.provider_name_for(currency))
