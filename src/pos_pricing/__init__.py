"""
POS Pricing Package

Cart pricing for the point-of-sale back office.
Resolves each cart line through Manual Override → Price Level → Promotion
discount precedence with strict stock enforcement.
"""

__version__ = "1.0.0"
