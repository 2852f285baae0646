"""
License Client Service for FlixPilot

This service decides whether a FlixPilot deployment is licensed and which
feature tiers it may use. It verifies the configured license with the
FlixPilot License Server and caches the answer so that outages do not
revoke access.
"""

__version__ = "1.0.0"
