"""
                Restaurant Billing System

Order lifecycle and billing engine for dine-in restaurants: orders,
lines, status and payment state machines, PDF bills and daily sales
reports, with hybrid Mock/Real payment providers.
"""

__version__ = "1.0.0"
