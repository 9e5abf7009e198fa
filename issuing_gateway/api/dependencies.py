"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from issuing_gateway.infrastructure.clients.issuing import IssuingClient
from issuing_gateway.infrastructure.dispatcher import AuthorizationDispatcher
from issuing_gateway.infrastructure.event_log import EventLog
from issuing_gateway.infrastructure.policy_store import PolicyStore


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_policy_store(request: Request) -> PolicyStore:
    """Application-wide policy snapshot holder"""
    return request.app.state.policy_store


def get_event_log(request: Request) -> EventLog:
    """Application-wide webhook event feed"""
    return request.app.state.event_log


def get_issuing_client() -> IssuingClient:
    """Provide issuing provider client instance"""
    return IssuingClient()


def get_dispatcher(
    issuing_client: IssuingClient = Depends(get_issuing_client),
    policy_store: PolicyStore = Depends(get_policy_store),
) -> AuthorizationDispatcher:
    """Authorization dispatcher bound to the current policy store"""
    return AuthorizationDispatcher(issuing_client, policy_store)
