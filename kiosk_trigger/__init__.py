"""
Kiosk Trigger - barcode-driven card dispensing over an HTTP or USB HID relay.
"""

__version__ = "0.1.0"
