"""Status word interpretation.

Every response ends with a 2-byte big-endian status word. ``0x9000`` is
success; ``0x61xx`` ("more data available" in ISO 7816) is also treated as
success because the framing layer has already delivered the full length.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import StatusError, UnknownStatusError

SW_OK = 0x9000
SW_MORE_DATA_MASK = 0xFF00
SW_MORE_DATA = 0x6100


class StatusWord(IntEnum):
    """Known failure status words."""

    WRONG_TARGET_ID = 0x6484
    SECURITY_STATUS_NOT_SATISFIED = 0x6982
    DENIED = 0x6985
    BELOW_WATERMARK = 0x6A80
    MISSING_LIBRARY = 0x6A83
    NOT_ENOUGH_SPACE = 0x6A84
    NOT_ENOUGH_SPACE_ALT = 0x6A85
    INCORRECT_PARAMETERS = 0x6B00
    WRONG_LENGTH = 0x6C00
    NOT_ALLOWED = 0x6C66
    UNSUPPORTED_INSTRUCTION = 0x6D00
    WRONG_APPLICATION = 0x6E00
    INTERNAL_ERROR = 0x6F00
    COMMAND_STRING_LENGTH = 0x917E
    PARSE_ERROR = 0x9405


STATUS_MESSAGES: dict[StatusWord, str] = {
    StatusWord.WRONG_TARGET_ID: "Are you using the correct targetId?",
    StatusWord.SECURITY_STATUS_NOT_SATISFIED: (
        "Security status not satisfied. Have you uninstalled the existing CA "
        "with resetCustomCA first?"
    ),
    StatusWord.DENIED: "Operation denied by the user",
    StatusWord.BELOW_WATERMARK: "Level is below safety watermark",
    StatusWord.MISSING_LIBRARY: "Maybe this app requires a library to be installed first?",
    StatusWord.NOT_ENOUGH_SPACE: "Not enough space?",
    StatusWord.NOT_ENOUGH_SPACE_ALT: "Not enough space?",
    StatusWord.INCORRECT_PARAMETERS: "Incorrect parameters received P1/P2",
    StatusWord.WRONG_LENGTH: "Wrong length",
    StatusWord.NOT_ALLOWED: "Operation not allowed",
    StatusWord.UNSUPPORTED_INSTRUCTION: "Unsupported instruction",
    StatusWord.WRONG_APPLICATION: (
        "Unexpected state of device: verify that the right application is opened?"
    ),
    StatusWord.INTERNAL_ERROR: "Internal technical problem",
    StatusWord.COMMAND_STRING_LENGTH: "Length of command string invalid",
    StatusWord.PARSE_ERROR: "Parse error",
}

# Failures a caller may reasonably retry once the user acts on the device.
RETRYABLE_STATUSES = frozenset({
    StatusWord.SECURITY_STATUS_NOT_SATISFIED,
    StatusWord.DENIED,
    StatusWord.WRONG_APPLICATION,
})


def is_success(status_word: int) -> bool:
    return status_word == SW_OK or (status_word & SW_MORE_DATA_MASK) == SW_MORE_DATA


def check_status(status_word: int) -> None:
    """Raise the categorized error for a failure status word.

    Raises:
        StatusError: For a known failure status.
        UnknownStatusError: For any other non-success value.
    """
    if is_success(status_word):
        return

    try:
        category = StatusWord(status_word)
    except ValueError:
        raise UnknownStatusError(status_word) from None

    raise StatusError(
        status_word,
        STATUS_MESSAGES[category],
        retryable=category in RETRYABLE_STATUSES,
    )
