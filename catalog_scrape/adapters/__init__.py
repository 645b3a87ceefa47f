from typing import Dict, Optional

import tldextract

from .adapter_best import BestAdapter
from .adapter_jarir import JarirAdapter
from .adapter_xcite import XciteAdapter
from .base import SiteAdapter, TraversalStrategy

# Bundled public-suffix snapshot only; no network lookups.
_extract = tldextract.TLDExtract(suffix_list_urls=())

ADAPTERS: Dict[str, SiteAdapter] = {
    a.key: a for a in (BestAdapter(), JarirAdapter(), XciteAdapter())
}


def get_adapter(key: str) -> SiteAdapter:
    try:
        return ADAPTERS[key.lower()]
    except KeyError:
        raise KeyError(f"unknown store {key!r}; expected one of {sorted(ADAPTERS)}") from None


def pick_adapter(url: str) -> Optional[SiteAdapter]:
    domain = _extract(url).top_domain_under_public_suffix
    if not domain:
        return None
    for adapter in ADAPTERS.values():
        if domain in adapter.domains:
            return adapter
    return None


__all__ = ["ADAPTERS", "SiteAdapter", "TraversalStrategy", "get_adapter", "pick_adapter"]
