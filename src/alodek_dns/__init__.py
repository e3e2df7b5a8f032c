"""
Alodek DNS

Minimal DNS resolver and forwarder: answers A queries from a local record
store and relays everything else to upstream resolvers.
"""

__version__ = "0.1.0"
