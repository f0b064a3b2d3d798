"""
Arq backup status aggregator.

Periodically reconciles Arq backup-completion emails into a per-plan
health ledger:
- Fetches notification emails from an IMAP label folder
- Extracts plan name, end time and error count from each body
- Merges observations into a persisted JSON ledger
- Classifies each plan and sends an aggregate status report
"""

__version__ = "1.0.0"
