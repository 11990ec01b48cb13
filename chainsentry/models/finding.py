"""Pydantic models for detector findings.

Every detector emits zero or more ``Finding`` objects per transaction. A
finding is an immutable value object: it is created fresh by the detector
and never mutated or deduplicated afterwards (callers may deduplicate).

Metadata is a flat, ordered ``str -> str`` mapping. Downstream consumers
match on the documented keys of each alert, so nested values (token paths
for example) are serialised to JSON strings before they are stored.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FindingSeverity(StrEnum):
    """Severity attached to a finding, lowest to highest."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank used for ordering (info=0 ... critical=4)."""
        return list(FindingSeverity).index(self)


class FindingType(StrEnum):
    """Nature of a finding.

    Attributes:
        INFO: Informational event, nothing wrong by itself.
        SUSPICIOUS: Pattern consistent with an attack or risky behaviour.
        EXPLOIT: Interaction with something known to be malicious.
    """

    INFO = "info"
    SUSPICIOUS = "suspicious"
    EXPLOIT = "exploit"


class Finding(BaseModel):
    """A single structured detection result.

    Attributes:
        name: Short human readable title.
        description: One sentence describing what was observed.
        alert_id: Stable identifier of the rule that fired (e.g. ``MEV-2``).
        severity: How serious the finding is.
        type: Whether the finding is informational, suspicious or an exploit.
        metadata: Flat ordered mapping of rule specific keys to string values.
        protocol: Chain family the finding refers to.

    Example:
        >>> finding = Finding(
        ...     name="Potential Sandwich Attack",
        ...     description="Pattern of transactions consistent with a sandwich attack",
        ...     alert_id="MEV-2",
        ...     severity=FindingSeverity.HIGH,
        ...     type=FindingType.SUSPICIOUS,
        ...     metadata={"victimTx": "0xabc..."},
        ... )
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    name: str = Field(..., min_length=1, description="Short title of the finding")
    description: str = Field(..., min_length=1, description="What was observed")
    alert_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Identifier of the rule that produced the finding",
        examples=["MEV-2", "APPROVAL-MALICIOUS-1"],
    )
    severity: FindingSeverity
    type: FindingType
    metadata: dict[str, str] = Field(default_factory=dict)
    protocol: str = Field(default="ethereum", min_length=1)

    @field_validator("metadata", mode="before")
    @classmethod
    def stringify_metadata(cls, v: Any) -> dict[str, str]:
        """Coerce metadata values to strings, keeping key order."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("metadata must be a mapping")
        return {str(key): _metadata_value(value) for key, value in v.items()}

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to a plain dictionary (camelCase alert id, as emitted)."""
        return {
            "name": self.name,
            "description": self.description,
            "alertId": self.alert_id,
            "protocol": self.protocol,
            "severity": self.severity.value,
            "type": self.type.value,
            "metadata": dict(self.metadata),
        }


def _metadata_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    if isinstance(value, StrEnum):
        return value.value
    return str(value)


__all__ = [
    "Finding",
    "FindingSeverity",
    "FindingType",
]
