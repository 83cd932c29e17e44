"""
Carapace Shared Module
======================

Configuration, structured logging, and console presentation shared by
the Carapace decoder and its command-line front end.
"""

from shared.config import CarapaceConfig, get_config

__all__ = ["CarapaceConfig", "get_config"]
