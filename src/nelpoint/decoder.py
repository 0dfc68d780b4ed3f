from __future__ import annotations

from typing import List

from pydantic import TypeAdapter, ValidationError

from nelpoint.errors import BatchDecodeError
from nelpoint.models import Report

_BATCH = TypeAdapter(List[Report])


def decode_batch(payload: bytes) -> List[Report]:
    """
    Parse a request body holding a JSON array of reports.

    The batch is all or nothing: bad JSON, a non-array top level or a single
    member that doesn't fit the Report shape fails the whole batch.
    """
    try:
        return _BATCH.validate_json(payload)
    except ValidationError as e:
        raise BatchDecodeError(f"{e.error_count()} error(s) decoding report batch") from e
