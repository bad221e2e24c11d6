from sma_scanner.db.dbadapter import ScanStore, create_and_init

__all__ = ["ScanStore", "create_and_init"]
