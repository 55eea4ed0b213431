"""
Items

Data access for the items inventory table.
"""

from toolshed.items.repository import ItemsRepository

__all__ = ["ItemsRepository"]
