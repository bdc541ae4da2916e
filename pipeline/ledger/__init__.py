from .ledger import PageLedger, new_page_id

__all__ = ["PageLedger", "new_page_id"]
