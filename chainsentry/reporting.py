"""Tabular export and markdown reports for detector findings."""

from __future__ import annotations

import json
from collections import Counter
from typing import Any

import pandas as pd

from chainsentry.models.finding import Finding, FindingSeverity
from chainsentry.validation import ValidationResult

FINDING_COLUMNS: list[str] = [
    "detector",
    "tx_hash",
    "alert_id",
    "name",
    "description",
    "severity",
    "type",
    "protocol",
    "metadata",
]


def findings_to_dataframe(
    findings: list[Finding],
    detector: str = "",
    tx_hash: str = "",
) -> pd.DataFrame:
    """Convert a list of findings to a DataFrame.

    Args:
        findings: Findings to convert.
        detector: Name of the detector that produced them.
        tx_hash: Transaction the findings refer to.

    Returns:
        DataFrame with one row per finding and metadata as a JSON column.
    """
    if not findings:
        return pd.DataFrame(columns=FINDING_COLUMNS)

    records = [_finding_record(detector, tx_hash, f) for f in findings]
    return pd.DataFrame(records, columns=FINDING_COLUMNS)


def _finding_record(detector: str, tx_hash: str, finding: Finding) -> dict[str, str]:
    return {
        "detector": detector,
        "tx_hash": tx_hash,
        "alert_id": finding.alert_id,
        "name": finding.name,
        "description": finding.description,
        "severity": finding.severity.value,
        "type": finding.type.value,
        "protocol": finding.protocol,
        "metadata": json.dumps(finding.metadata),
    }


class DetectionReport:
    """Collects findings per transaction and detector and renders markdown.

    Example:
        >>> report = DetectionReport()
        >>> report.add_findings("mev", tx.hash, findings)
        >>> print(report.generate_markdown())
    """

    def __init__(self) -> None:
        self.entries: list[tuple[str, str, Finding]] = []  # (detector, tx_hash, finding)
        self.transactions_analyzed = 0
        self.validation_result: ValidationResult | None = None

    def add_validation_result(self, result: ValidationResult) -> None:
        self.validation_result = result

    def add_findings(self, detector: str, tx_hash: str, findings: list[Finding]) -> None:
        """Record the findings one detector produced for one transaction."""
        self.entries.extend((detector, tx_hash, finding) for finding in findings)

    def to_dataframe(self) -> pd.DataFrame:
        """All recorded findings as one DataFrame."""
        if not self.entries:
            return pd.DataFrame(columns=FINDING_COLUMNS)
        records = [_finding_record(*entry) for entry in self.entries]
        return pd.DataFrame(records, columns=FINDING_COLUMNS)

    def severity_counts(self) -> dict[str, int]:
        counts = Counter(finding.severity for _, _, finding in self.entries)
        return {
            severity.value: counts.get(severity, 0)
            for severity in sorted(FindingSeverity, key=lambda s: s.rank, reverse=True)
        }

    def summary(self) -> dict[str, Any]:
        return {
            "transactions_analyzed": self.transactions_analyzed,
            "total_findings": len(self.entries),
            "by_severity": self.severity_counts(),
            "by_alert_id": dict(Counter(f.alert_id for _, _, f in self.entries).most_common()),
        }

    def generate_markdown(self, top_n: int = 20) -> str:
        """Generate markdown report.

        Returns:
            Formatted markdown string.
        """
        summary = self.summary()
        lines = [
            "# Transaction Detection Report",
            "",
            "## Summary Statistics",
            "",
            f"- **Transactions Analyzed**: {summary['transactions_analyzed']:,}",
            f"- **Total Findings**: {summary['total_findings']:,}",
            "",
        ]

        if self.validation_result is not None:
            result = self.validation_result
            lines.extend([
                "## Input Validation",
                "",
                f"- **Total Records**: {result.total_records:,}",
                f"- **Valid Records**: {result.valid_records:,}",
                f"- **Invalid Records**: {result.invalid_records:,}",
                f"- **Duplicates Dropped**: {result.duplicate_count:,}",
                "",
            ])
            for error in result.validation_errors[:5]:
                lines.append(f"- {error}")
            if result.validation_errors:
                lines.append("")

        lines.extend([
            "## Findings by Severity",
            "",
            "| Severity | Count |",
            "|----------|-------|",
        ])
        for severity, count in summary["by_severity"].items():
            lines.append(f"| {severity} | {count} |")
        lines.append("")

        if not self.entries:
            return "\n".join(lines)

        lines.extend([
            "## Findings by Alert",
            "",
            "| Alert ID | Count |",
            "|----------|-------|",
        ])
        for alert_id, count in summary["by_alert_id"].items():
            lines.append(f"| {alert_id} | {count} |")
        lines.append("")

        lines.extend([
            "## Top Findings by Severity",
            "",
            "| Rank | Severity | Alert ID | Detector | Transaction | Name |",
            "|------|----------|----------|----------|-------------|------|",
        ])
        ranked = sorted(self.entries, key=lambda e: e[2].severity.rank, reverse=True)[:top_n]
        for rank, (detector, tx_hash, finding) in enumerate(ranked, 1):
            tx_short = f"{tx_hash[:10]}...{tx_hash[-8:]}" if len(tx_hash) > 20 else tx_hash
            lines.append(
                f"| {rank} | {finding.severity.value} | {finding.alert_id} | "
                f"{detector} | {tx_short} | {finding.name} |"
            )
        lines.append("")

        return "\n".join(lines)


__all__ = [
    "FINDING_COLUMNS",
    "findings_to_dataframe",
    "DetectionReport",
]
