"""
settlement_services -- orchestration over the settlement engines.

``CloseoutService`` wires configuration into the pure engines;
``apply_and_lock`` is the single atomic write that finalizes a closeout.
"""

from settlement_services.closeout_lock import CloseoutLockResult, apply_and_lock
from settlement_services.closeout_service import CloseoutService

__all__ = [
    "CloseoutLockResult",
    "CloseoutService",
    "apply_and_lock",
]
