"""
Sigil - key material and transaction signing.
"""
