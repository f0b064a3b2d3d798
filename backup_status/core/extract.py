"""
Text and field extraction for Arq backup notification emails.

Arq reports look like:

    Backup Plan: Laptop
    Start Time: 1/3/2024 1:00:02 AM
    End Time: 1/3/2024 1:04:40 AM
    Errors: 0

Some mail clients deliver only an HTML body; tags are replaced with
newlines so the same "Tag: value" lines can be found.
"""

import base64
import binascii
import re
from datetime import datetime, timezone, tzinfo

from dateutil import parser as date_parser

from backup_status.core.errors import MissingFieldError, UnparseableMessageError
from backup_status.core.models import MessageBody, Observation, RawMessage

PLAN_TAG = "Backup Plan:"
END_TIME_TAG = "End Time:"
ERRORS_TAG = "Errors:"

_TAG_PATTERN = re.compile(r"<[^>]+>")
_LEADING_INT = re.compile(r"\d+")


def _decode_base64(data: str) -> str:
    """Decode standard or URL-safe base64, tolerating missing padding."""
    normalized = data.strip().replace("+", "-").replace("/", "_")
    normalized += "=" * (-len(normalized) % 4)
    try:
        raw = base64.urlsafe_b64decode(normalized)
    except (binascii.Error, ValueError) as e:
        raise UnparseableMessageError(f"invalid base64 payload: {e}") from e
    return raw.decode("utf-8", errors="replace")


def extract_message_text(body: MessageBody) -> str | None:
    """
    Turn a message body structure into plaintext.

    Prefers a text/plain part. Without a part list, the inline payload is
    decoded and every <...> span replaced with a newline.

    Returns:
        The text, or None when there is nothing to parse
    """
    if body.parts:
        for part in body.parts:
            if part.mime_type == "text/plain":
                return _decode_base64(part.data)
        return None

    if body.data:
        html = _decode_base64(body.data)
        return _TAG_PATTERN.sub("\n", html)

    return None


def extract_field(tag: str, text: str) -> str:
    """
    Return the value following the first occurrence of tag, up to end of line.

    Raises:
        MissingFieldError: If tag does not occur in text
    """
    index = text.find(tag)
    if index < 0:
        raise MissingFieldError(tag)

    # Value may start on the next line when the tag sat in its own HTML element
    remainder = text[index + len(tag):].strip()
    return remainder.split("\n", 1)[0].strip()


def _end_time_to_utc(value: datetime, zone: tzinfo | None) -> datetime:
    """Arq writes End Time without an offset, in the local time of the backed-up machine."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone) if zone else value.astimezone()
    return value.astimezone(timezone.utc)


def parse_observation(message: RawMessage, zone: tzinfo | None = None) -> Observation:
    """
    Parse plan name, end time and error count from a notification email.

    Args:
        message: The notification email
        zone: Zone for an End Time without offset; None uses the host's local zone

    Raises:
        MissingFieldError: A required tag is absent
        UnparseableMessageError: No body, or a field value is malformed
    """
    text = extract_message_text(message.body)
    if not text:
        raise UnparseableMessageError("message has no extractable body")

    plan_name = extract_field(PLAN_TAG, text)
    if not plan_name:
        raise UnparseableMessageError("empty backup plan name")

    end_time_text = extract_field(END_TIME_TAG, text)
    try:
        end_time = _end_time_to_utc(date_parser.parse(end_time_text), zone)
    except (ValueError, OverflowError, OSError) as e:
        raise UnparseableMessageError(f"invalid end time {end_time_text!r}") from e

    errors_text = extract_field(ERRORS_TAG, text)
    match = _LEADING_INT.match(errors_text)
    if not match:
        raise UnparseableMessageError(f"invalid error count {errors_text!r}")

    return Observation(plan_name=plan_name, end_time=end_time, errors=int(match.group()))
