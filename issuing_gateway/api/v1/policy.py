"""GET/PUT /v1/policy - read and hot-swap the spending policy"""

import logging
from fastapi import APIRouter, Depends, Request

from issuing_gateway.api.dependencies import get_policy_store, get_request_id
from issuing_gateway.api.v1.schemas import PolicySchema
from issuing_gateway.infrastructure.policy_store import PolicyStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/policy", response_model=PolicySchema)
def get_policy(policy_store: PolicyStore = Depends(get_policy_store)):
    """Current spending policy, limits in evaluation order"""
    return PolicySchema.from_domain(policy_store.current())


@router.put("/policy", response_model=PolicySchema)
def replace_policy(
    body: PolicySchema,
    request: Request,
    policy_store: PolicyStore = Depends(get_policy_store),
):
    """
    Replace the spending policy.

    The body is validated before anything changes; authorizations already
    being evaluated finish against the previous snapshot.
    """
    policy = body.to_domain()
    policy_store.replace(policy)
    logger.info(
        "Policy updated via API",
        extra={"request_id": get_request_id(request), "policy_version": policy_store.version},
    )
    return PolicySchema.from_domain(policy)
