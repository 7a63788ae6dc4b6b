"""
Static provider registry built once at startup.

This module maps `spec.vendorType` strings to provider instances. The mapping is a plain
dictionary assembled from configuration when the application starts; there is no dynamic
discovery. Adding a vendor means writing one `VendorProvider` subclass and adding one entry to
`PROVIDER_FACTORIES`; the reconciler's dispatch logic never changes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping

from provider_api.base import VendorProvider
from provider_api.sony_provider import SonyProvider

logger = logging.getLogger(__name__)


def _build_sony(vendor_cfg: Mapping[str, Any], retry_cfg: Mapping[str, Any]) -> VendorProvider:
    return SonyProvider(
        base_url=str(vendor_cfg["base_url"]),
        api_key=str(vendor_cfg["api_key"]),
        max_retries=int(retry_cfg.get("max_retries", 3)),
        base_delay_s=float(retry_cfg.get("base_delay_s", 0.1)),
        max_delay_s=float(retry_cfg.get("max_delay_s", 5.0)),
    )


PROVIDER_FACTORIES: Dict[str, Callable[[Mapping[str, Any], Mapping[str, Any]], VendorProvider]] = {
    "sony": _build_sony,
}


def build_providers(config: Mapping[str, Any]) -> Dict[str, VendorProvider]:
    """
    Instantiate one provider per vendor configured under `config["vendors"]`.

    Args:
        config (Mapping[str, Any]): The global CONFIG mapping.

    Returns:
        Dict[str, VendorProvider]: vendorType -> provider instance.

    Raises:
        ValueError: A vendor is configured for which no adapter exists.
    """
    vendors_cfg = config.get("vendors", {}) or {}
    retry_cfg = config.get("retry", {}) or {}
    providers: Dict[str, VendorProvider] = {}
    for vendor, vendor_cfg in vendors_cfg.items():
        factory = PROVIDER_FACTORIES.get(vendor)
        if factory is None:
            raise ValueError(f"Unsupported vendor in configuration: {vendor}")
        providers[vendor] = factory(vendor_cfg, retry_cfg)
        logger.info("Provider registered: %s -> %s", vendor, vendor_cfg.get("base_url"))
    return providers
