"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the runtime,
the services built on it, and configuration.
"""

from __future__ import annotations

from fastapi import Depends, Request
from solders.pubkey import Pubkey

from token_escrow.config import Settings, get_settings
from token_escrow.domain.exceptions import InvalidAddressError
from token_escrow.runtime.processor import Runtime
from token_escrow.services.escrow_service import EscrowService


def get_runtime(request: Request) -> Runtime:
    """Provide the runtime created during application startup."""
    return request.app.state.runtime


def get_escrow_service(runtime: Runtime = Depends(get_runtime)) -> EscrowService:
    """Provide an EscrowService bound to the runtime."""
    return EscrowService(runtime)


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


def parse_address(value: str) -> Pubkey:
    """Decode a base58 address from a path or query parameter."""
    try:
        return Pubkey.from_string(value)
    except ValueError as err:
        raise InvalidAddressError(value) from err
