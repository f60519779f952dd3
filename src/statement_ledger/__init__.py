"""Bank statement ledger reconstruction from positioned PDF text."""

__version__ = "0.1.0"
