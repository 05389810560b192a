# =============================================================================
# File: novel_sync/ledger/ports/__init__.py
# Description: Ports directory for the ledger boundary
# =============================================================================
# EMPTY - use direct imports:
#   from novel_sync.ledger.ports.ledger_port import LedgerPort, EventFeedPort
