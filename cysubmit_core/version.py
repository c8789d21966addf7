"""
cysubmit Version Management - Centralized version for all components

Single source of truth for the cysubmit version. The CLI banner and the
packaging metadata read from here.
"""

# =============================================================================
# cysubmit Version - Single Source of Truth
# =============================================================================

__version__ = "0.4.2"

# Semantic versioning components
VERSION_MAJOR = 0
VERSION_MINOR = 4
VERSION_PATCH = 2
VERSION_SUFFIX = ""  # e.g., "alpha", "beta", "rc1", ""

# Full version string with optional suffix
VERSION_FULL = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
if VERSION_SUFFIX:
    VERSION_FULL = f"{VERSION_FULL}-{VERSION_SUFFIX}"


def get_short_banner() -> str:
    """Get a compact version banner."""
    return f"cysubmit v{VERSION_FULL} | secure Cypress result submission"

