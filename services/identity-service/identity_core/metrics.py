"""Prometheus counters for authorization resolution diagnostics."""

from __future__ import annotations

from prometheus_client import Counter

UNRESOLVED_ROLE_REFERENCES = Counter(
    "identity_unresolved_role_references_total",
    "Role references that the role directory did not recognise during resolution.",
)

DIRECTORY_UNAVAILABLE = Counter(
    "identity_directory_unavailable_total",
    "Directory lookups that failed or timed out while building a snapshot.",
    ["directory"],
)
