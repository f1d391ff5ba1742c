from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .. import DEFAULT_RESOLVER_CONFIG

# camelCase keys are accepted for payloads produced by the site layer
CONFIG_ALIASES = {
    'baseUrl': 'base_url',
    'defaultLocale': 'default_locale',
    'siteName': 'site_name',
    'twitterSite': 'twitter_site',
}


def normalize_options(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy of values with camelCase aliases renamed to field names"""
    return {CONFIG_ALIASES.get(key, key): value for key, value in (values or {}).items()}


@dataclass(frozen=True)
class ResolverConfig:
    """Site-wide settings every resolver and builder reads"""
    base_url: str = DEFAULT_RESOLVER_CONFIG['base_url']
    default_locale: str = DEFAULT_RESOLVER_CONFIG['default_locale']
    site_name: str = DEFAULT_RESOLVER_CONFIG['site_name']
    twitter_site: str = DEFAULT_RESOLVER_CONFIG['twitter_site']

    def __post_init__(self):
        if not self.base_url.startswith(('http://', 'https://')):
            raise ValueError(f"base_url must be absolute, got {self.base_url!r}")
        # Canonicals never end with a slash
        object.__setattr__(self, 'base_url', self.base_url.rstrip('/'))

    @classmethod
    def option_names(cls) -> frozenset:
        """Field names plus their camelCase aliases"""
        return frozenset(f.name for f in fields(cls)) | frozenset(CONFIG_ALIASES)

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]] = None) -> 'ResolverConfig':
        values = normalize_options(values)
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown resolver options: {sorted(unknown)}")
        return cls(**values)


DEFAULT_CONFIG = ResolverConfig()
