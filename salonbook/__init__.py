"""
salonbook - appointment booking and schedule negotiation for a hair salon.
"""

__version__ = "0.1.0"
