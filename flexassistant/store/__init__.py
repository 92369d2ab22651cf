from flexassistant.store.watermarks import StoreError, WatermarkStore

__all__ = ["StoreError", "WatermarkStore"]
