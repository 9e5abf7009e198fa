"""Spending policy loading and hot-swappable snapshot holder"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from issuing_gateway.api.v1.schemas import PolicySchema
from issuing_gateway.config import settings
from issuing_gateway.domain.defaults import build_default_policy
from issuing_gateway.domain.exceptions import PolicyConfigError
from issuing_gateway.domain.models import PolicyConfig

logger = logging.getLogger(__name__)


def parse_policy(document: Dict[str, Any]) -> PolicyConfig:
    """
    Validate a policy document and build the read-only domain snapshot.

    Raises:
        PolicyConfigError: If the document does not validate
    """
    try:
        return PolicySchema.model_validate(document).to_domain()
    except PydanticValidationError as e:
        raise PolicyConfigError(f"Invalid policy document: {e}") from e


def load_policy_file(path: str | Path) -> PolicyConfig:
    """
    Load a JSON policy document from disk.

    Raises:
        PolicyConfigError: If the file is missing, not JSON, or invalid
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PolicyConfigError(f"Cannot read policy file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise PolicyConfigError(f"Policy file {path} is not valid JSON: {e}") from e
    return parse_policy(document)


def load_initial_policy(policy_file: Optional[str] = None, preset: Optional[str] = None) -> PolicyConfig:
    """Policy file when configured, otherwise the demo defaults for the preset"""
    policy_file = policy_file if policy_file is not None else settings.policy_file
    if policy_file:
        policy = load_policy_file(policy_file)
        logger.info("Loaded spending policy", extra={"policy_file": str(policy_file)})
        return policy
    return build_default_policy(preset or settings.spending_limit_preset)


class PolicyStore:
    """
    Holds the current PolicyConfig snapshot.

    Readers take a reference to the snapshot and evaluate against it; replace()
    swaps in a whole new snapshot, so an in-flight evaluation never sees a
    half-updated policy.
    """

    def __init__(self, policy: PolicyConfig):
        self._policy = policy
        self._lock = threading.Lock()
        self._version = 1

    def current(self) -> PolicyConfig:
        return self._policy

    @property
    def version(self) -> int:
        return self._version

    def replace(self, policy: PolicyConfig) -> PolicyConfig:
        """Swap in a new snapshot and return the previous one"""
        with self._lock:
            previous = self._policy
            self._policy = policy
            self._version += 1
        logger.info("Spending policy replaced", extra={"policy_version": self._version})
        return previous
