"""Validation of raw transaction records before detection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from chainsentry.models.transaction import TransactionEvent


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a batch of transaction records.

    Attributes:
        total_records: Total number of records processed.
        valid_records: Number of unique records that passed validation.
        invalid_records: Number of records that failed validation.
        validation_errors: List of error messages for invalid records.
        duplicate_count: Number of valid records dropped as duplicate hashes.
            They count neither as valid nor as invalid.
    """

    total_records: int
    valid_records: int
    invalid_records: int
    validation_errors: list[str] = field(default_factory=list)
    duplicate_count: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate validation success rate as percentage."""
        if self.total_records == 0:
            return 100.0
        return (self.valid_records / self.total_records) * 100

    @property
    def is_valid(self) -> bool:
        """Check if all records passed validation."""
        return self.invalid_records == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for reporting."""
        return {
            "total_records": self.total_records,
            "valid_records": self.valid_records,
            "invalid_records": self.invalid_records,
            "success_rate": f"{self.success_rate:.2f}%",
            "duplicate_count": self.duplicate_count,
            "validation_errors": self.validation_errors[:10],  # Limit errors in report
        }


class TransactionValidator:
    """Turns raw node-style transaction records into ``TransactionEvent`` objects.

    Records may use JSON-RPC naming (``from``, ``to``, ``gasPrice``,
    ``blockNumber``, ``input``) or the model's own field names. Traces may
    carry their call under an ``action`` key, as Parity-style tracers emit.

    Example:
        >>> validator = TransactionValidator()
        >>> events, result = validator.validate_records(records)
        >>> print(f"Success rate: {result.success_rate:.1f}%")
    """

    KEY_ALIASES: dict[str, str] = {
        "from": "sender",
        "to": "recipient",
        "gasPrice": "gas_price",
        "blockNumber": "block_number",
        "input": "data",
        "transactionHash": "hash",
        "txHash": "hash",
    }

    TRACE_ALIASES: dict[str, str] = {
        "from": "from_address",
        "callType": "type",
    }

    TRACE_FIELDS: tuple[str, ...] = ("type", "from_address", "to", "input")

    def __init__(self) -> None:
        self._errors: list[tuple[int, str, str]] = []  # (index, kind, error)

    def validate_records(
        self, records: Iterable[dict[str, Any]]
    ) -> tuple[list[TransactionEvent], ValidationResult]:
        """Validate records, dropping invalid ones and duplicate hashes.

        Args:
            records: Raw transaction records.

        Returns:
            Tuple of (valid events in input order, ValidationResult).
        """
        self._errors = []
        records = list(records)
        events: list[TransactionEvent] = []

        for idx, record in enumerate(records):
            try:
                events.append(self.validate_record(record))
            except ValidationError as e:
                error_msg = f"Row {idx}: {e.errors()[0]['msg']}"
                self._errors.append((idx, "validation", error_msg))
            except (TypeError, ValueError, KeyError) as e:
                error_msg = f"Row {idx}: Unexpected error - {e}"
                self._errors.append((idx, "exception", error_msg))

        unique, duplicate_count = self._drop_duplicates(events)

        result = ValidationResult(
            total_records=len(records),
            valid_records=len(unique),
            invalid_records=len(records) - len(events),
            validation_errors=[err[2] for err in self._errors],
            duplicate_count=duplicate_count,
        )
        return unique, result

    def validate_record(self, record: dict[str, Any]) -> TransactionEvent:
        """Validate a single record.

        Raises:
            ValidationError: If record fails Pydantic validation.
        """
        return TransactionEvent(**self._normalize_record(record))

    def _normalize_record(self, record: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(record, dict):
            raise TypeError(f"record must be a mapping, got {type(record).__name__}")

        normalized: dict[str, Any] = {}
        for key, value in record.items():
            normalized[self.KEY_ALIASES.get(key, key)] = value

        if "logs" in normalized:
            normalized["logs"] = [self._normalize_log(log) for log in normalized["logs"] or []]
        if "calls" in normalized:
            normalized["calls"] = [self._normalize_call(call) for call in normalized["calls"] or []]
        if "traces" in normalized:
            normalized["traces"] = [self._normalize_trace(t) for t in normalized["traces"] or []]
        return normalized

    @staticmethod
    def _normalize_log(log: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(log)
        if "event" in normalized and "signature" not in normalized:
            normalized["signature"] = normalized.pop("event")
        return normalized

    @staticmethod
    def _normalize_call(call: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(call)
        if "function" in normalized and "signature" not in normalized:
            normalized["signature"] = normalized.pop("function")
        if "to" in normalized and "address" not in normalized:
            normalized["address"] = normalized.pop("to")
        return normalized

    def _normalize_trace(self, trace: dict[str, Any]) -> dict[str, Any]:
        # Parity traces nest the call under "action"; callType wins over the outer type
        flat = dict(trace)
        flat.update(flat.pop("action", None) or {})
        normalized = {self.TRACE_ALIASES.get(key, key): value for key, value in flat.items()}
        return {key: normalized[key] for key in self.TRACE_FIELDS if key in normalized}

    @staticmethod
    def _drop_duplicates(events: list[TransactionEvent]) -> tuple[list[TransactionEvent], int]:
        # First occurrence of a hash wins
        seen: set[str] = set()
        unique: list[TransactionEvent] = []
        for event in events:
            if event.hash not in seen:
                seen.add(event.hash)
                unique.append(event)
        return unique, len(events) - len(unique)


__all__ = [
    "ValidationResult",
    "TransactionValidator",
]
