"""
Carapace Core
=============

Decode session, immutable data models, and the error hierarchy.
"""
