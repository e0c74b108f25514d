"""orderdesk - order pricing, status tracking and WhatsApp checkout messages."""

__version__ = "0.1.0"
