from .config import load_policy
from .errors import (
    ConnectionRejected,
    InterceptorStateError,
    InvalidPolicyInput,
    ParanoidGuardError,
    PolicyViolation,
    ProxyNotAllowed,
    RejectionKind,
)
from .execution import ParanoidGuard, TransferHandle, TransferResult
from .interceptor import ConnectionContext, ConnectionInterceptor
from .policy import (
    DEFAULT_IP_BLACKLIST,
    DEFAULT_PORT_WHITELIST,
    AddressPolicy,
    CandidateAddress,
    FailureMode,
    ValidationOutcome,
)

__all__ = [
    "AddressPolicy",
    "CandidateAddress",
    "ConnectionContext",
    "ConnectionInterceptor",
    "ConnectionRejected",
    "DEFAULT_IP_BLACKLIST",
    "DEFAULT_PORT_WHITELIST",
    "FailureMode",
    "InterceptorStateError",
    "InvalidPolicyInput",
    "ParanoidGuard",
    "ParanoidGuardError",
    "PolicyViolation",
    "ProxyNotAllowed",
    "RejectionKind",
    "TransferHandle",
    "TransferResult",
    "ValidationOutcome",
    "load_policy",
]
