"""Gateway error taxonomy.

Every failure that crosses a component boundary is a GatewayError subclass
with a stable ``kind`` string. Transports map kinds to their own status codes.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for gateway failures."""

    kind = "gateway_error"


class ConfigurationFatal(GatewayError):
    """Raised when the gateway cannot serve at all (e.g. no tools registered)."""

    kind = "configuration_fatal"


class StoreUnavailable(GatewayError):
    kind = "store_unavailable"

    def __init__(self, message: str = "Database not available"):
        super().__init__(message)


class CredentialNotFound(GatewayError):
    kind = "credential_not_found"

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Credential not found for service: {service}")


class VaultError(GatewayError):
    """Raised for a missing or short master key, or an envelope that fails authentication."""

    kind = "vault_error"


class InvalidArguments(GatewayError):
    kind = "invalid_arguments"


class UnknownTool(GatewayError):
    kind = "unknown_tool"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class HandlerError(GatewayError):
    kind = "handler_error"


class UpstreamError(HandlerError):
    """Non-2xx response from an external API."""

    kind = "upstream_error"

    def __init__(self, service: str, status_code: int, message: str):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error ({status_code}): {message}")


class ModuleLoadError(GatewayError):
    kind = "module_load_error"


class ToolTimeout(GatewayError):
    kind = "timeout"
