"""Auth — credentials holder, refresh wrappers, authenticated executor."""

from ravenview.auth.credentials import (
    Credentials,
    CredentialsHolder,
    RefreshFunction,
    SingleFlightRefresh,
)
from ravenview.auth.executor import (
    AuthenticatingRequestExecutor,
    HttpxTransport,
    RequestDescriptor,
    Transport,
    execute_authenticated,
)

__all__ = [
    "Credentials",
    "CredentialsHolder",
    "RefreshFunction",
    "SingleFlightRefresh",
    "AuthenticatingRequestExecutor",
    "HttpxTransport",
    "RequestDescriptor",
    "Transport",
    "execute_authenticated",
]
