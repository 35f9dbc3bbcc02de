"""Item binding public API."""

from .binder import BoundTable, ItemBinder, UnboundRecord

__all__ = ["ItemBinder", "BoundTable", "UnboundRecord"]
