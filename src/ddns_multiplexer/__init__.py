"""
DDNS Multiplexer - A DynDNS v2 update fan-out service.

This package provides a service that accepts a single DynDNS-style update
request from a router and forwards it to every configured dynamic DNS
provider, reporting one aggregated status line back to the caller.
"""

__version__ = "0.1.0"
__author__ = "DDNS Multiplexer Contributors"
