"""Statement Intake: bank statement ingestion, deduplication and classification."""

__version__ = "0.3.0"
