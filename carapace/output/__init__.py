"""
Carapace Output
===============

Rich terminal rendering of decoded PE structures.
"""
