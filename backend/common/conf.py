"""
Engine settings.

Reads the HOS_ENGINE dict from Django settings, falling back to the
defaults below for any key a deployment leaves out.
"""

from django.conf import settings

DEFAULTS = {
    "DEFAULT_RULE_SET": "interstate",
    "DEFAULT_TIMEZONE": "America/Chicago",
    "LEDGER_STORE": "eld_logs.services.django_store.DjangoLedgerStore",
    "VIOLATION_STORE": "hos_compliance.services.django_store.DjangoViolationStore",
    "HORIZON_PADDING_DAYS": 1,
}


def engine_setting(name):
    """Return one HOS_ENGINE setting."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown HOS_ENGINE setting: {name}")
    return getattr(settings, "HOS_ENGINE", {}).get(name, DEFAULTS[name])
