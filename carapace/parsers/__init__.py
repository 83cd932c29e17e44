"""
Carapace Parsers
================

Field reader, constant tables, and the PE structure decoders.
"""
