"""
Service layer of the ledger core.

Modules are imported explicitly (``from ledger_core.services.workflow import
transition``); nothing is re-exported here so models can use the pure
helpers in ``currency`` without import cycles.
"""
