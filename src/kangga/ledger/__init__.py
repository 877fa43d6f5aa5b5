"""Worker wallet ledger."""
