"""Protocol layer: HID framing, status words, APDU builders, and the receive loop."""

from .framing import wrap, unwrap
from .status import StatusWord, check_status
from .commands import Command, Instruction
