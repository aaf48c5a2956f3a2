"""
                Pojang Ordering Backend

Store owners register menus, customers place orders, and the backend
validates pricing, ownership and authorization across stores, menus,
menu options and orders.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
