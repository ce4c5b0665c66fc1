"""
Merge request validation for CustomerMerge.

Validates incoming merge payloads with pydantic before any record is
touched. Both camelCase wire names (``primaryId``) and snake_case field
names (``primary_id``) are accepted.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from customer_merge.exceptions import RequestValidationError

logger = logging.getLogger(__name__)


class MergeRequest(BaseModel):
    """A request to fold ``record_ids`` into ``primary_id``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # Accepted for caller bookkeeping only.
    group_id: Optional[StrictStr] = Field(default=None, alias="groupId")
    primary_id: StrictInt = Field(alias="primaryId")
    record_ids: List[StrictInt] = Field(alias="recordIds")


class BatchMergeGroup(MergeRequest):
    """One group of a batch merge; the group id is required to report results."""

    group_id: StrictStr = Field(alias="groupId")


class BatchMergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    groups: List[BatchMergeGroup]


def validate_merge_request(payload: Any) -> MergeRequest:
    """
    Validate a single merge payload.

    Args:
        payload: Decoded request body

    Returns:
        Validated merge request

    Raises:
        RequestValidationError: If fields are missing or have the wrong type
    """
    try:
        return MergeRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Rejected merge request: {exc.error_count()} validation errors")
        raise RequestValidationError("Invalid request data", errors=exc.errors()) from exc


def validate_batch_merge_request(payload: Any) -> BatchMergeRequest:
    """
    Validate a batch merge payload.

    Args:
        payload: Decoded request body

    Returns:
        Validated batch request

    Raises:
        RequestValidationError: If the payload or any group is malformed
    """
    try:
        return BatchMergeRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Rejected batch merge request: {exc.error_count()} validation errors")
        raise RequestValidationError("Invalid request data", errors=exc.errors()) from exc
