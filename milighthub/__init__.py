"""Group state tracking and storage, radio framing, settings and SSDP discovery for MiLight hubs."""

__version__ = "0.1.0"