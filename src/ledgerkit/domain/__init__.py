"""Domain layer for ledgerkit application.

Services are imported lazily: the storage interfaces import
``ledgerkit.domain.entities``, and the services import the storage
interfaces, so eager imports here would form a cycle.
"""

_SERVICES = {
    "JournalService": "ledgerkit.domain.journal",
    "BalanceService": "ledgerkit.domain.balance",
    "AccountService": "ledgerkit.domain.account",
    "BatchService": "ledgerkit.domain.batch",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
