"""
Operational helpers: logging setup and setup verification.
"""
