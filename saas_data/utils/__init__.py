# ==============================================================================
# UTILS PACKAGE
# ==============================================================================

from saas_data.utils.helpers import ensure_utc, generate_uuid, utc_now

__all__ = [
    "generate_uuid",
    "utc_now",
    "ensure_utc",
]
