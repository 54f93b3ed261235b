"""Transport layer: the packet channel contract and its USB HID implementation.

The HID implementation lives in :mod:`.hid_connection` and is imported
explicitly so the protocol layer does not pull in USB backends.
"""

from .base import Transport
