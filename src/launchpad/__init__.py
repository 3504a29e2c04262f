"""Bonding-curve token launchpad: curve pricing, fees, settlement, and graduation."""

__version__ = "0.1.0"
