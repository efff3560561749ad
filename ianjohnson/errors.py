from __future__ import annotations


class SiteError(Exception):
    """Base class for failures that abort a site build."""


class ConfigError(SiteError):
    """Raised when site.yml cannot be loaded or has the wrong shape."""


class ContentError(SiteError):
    """Raised for unusable page sources: bad front matter, missing layouts, clashing outputs."""
