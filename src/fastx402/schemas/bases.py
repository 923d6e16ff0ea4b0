"""
Base Schema Models for fastx402

This module defines the base class every wire and configuration model
inherits from. It provides deterministic serialization so that the same
model always produces the same bytes, which both the payment header and
the signed message rely on.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON output

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Features:
        - Deterministic key sorting in JSON output
        - No extra whitespace
        - ``None`` fields omitted, so optional fields never appear as ``null``
          on the wire

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        MyModel(name="test", value=123).to_canonical_json()
        # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json", by_alias=True, exclude_none=True)`` produces
        plain Python types; ``json.dumps`` with sorted keys and compact
        separators fixes the byte layout.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        return json.dumps(
            self.to_dict(),
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to its wire dictionary representation.

        Returns:
            Dict[str, Any]: JSON-compatible dictionary, aliases applied, ``None`` dropped.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
