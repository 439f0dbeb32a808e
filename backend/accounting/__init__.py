"""
Accounting app - double-entry ledger core for FiniTax.

This app provides:
- Account: Chart of Accounts with hierarchy (leaf accounts take postings)
- JournalEntry: Entry header with DRAFT/POSTED workflow
- JournalLine: Debit-or-credit movements
- validate_entry: structural validation of candidate entries
- Commands: create/update/post/unpost/delete, one audit event each

Commands handle all mutations to ensure events are emitted.
"""
