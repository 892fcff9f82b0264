"""Email parsing from .msg and .json files using extract-msg library"""

import json
import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import List

import extract_msg
from tqdm import tqdm

from hitl_assistant.models.email import EmailContext

logger = logging.getLogger(__name__)

# Suppress INFO messages from extract_msg
logging.getLogger("extract_msg").setLevel(logging.ERROR)

SUPPORTED_SUFFIXES = (".msg", ".json")


def read_msg_file(file_path: Path) -> EmailContext:
    """
    Read and parse a single .msg file.

    Args:
        file_path: Path to the .msg file

    Returns:
        EmailContext with parsed content

    Raises:
        FileNotFoundError: If the file doesn't exist
        Exception: If the file cannot be parsed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    msg = extract_msg.Message(str(file_path))
    try:
        # Extract body (try multiple formats)
        body = ""
        if msg.body:
            body = msg.body
        elif hasattr(msg, "htmlBody") and msg.htmlBody:
            body = msg.htmlBody

        # Ensure body is a string (handle bytes/bytearray)
        if isinstance(body, (bytes, bytearray, memoryview)):
            body = bytes(body).decode("utf-8", errors="ignore")

        return EmailContext(
            subject=msg.subject or "",
            sender=msg.sender or "",
            body=str(body) if body else "",
            recipient=_first_recipient(msg.to),
            timestamp=_parse_email_date(msg.date),
            message_id=msg.messageId,
        )
    finally:
        msg.close()


def read_json_email(file_path: Path) -> EmailContext:
    """
    Read an email stored as JSON.

    Accepts either the EmailContext field names or the common
    ``from``/``to``/``id`` aliases used by mailbox exports.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a JSON object
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    data = json.loads(file_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {file_path}")

    recipient = data.get("recipient") or data.get("to")
    if isinstance(recipient, list):
        recipient = ",".join(str(r) for r in recipient)
    message_id = data.get("message_id") or data.get("id")

    return EmailContext(
        subject=str(data.get("subject") or ""),
        sender=str(data.get("sender") or data.get("from") or ""),
        body=str(data.get("body") or ""),
        recipient=_first_recipient(recipient),
        timestamp=_parse_email_date(data.get("timestamp") or data.get("date")),
        message_id=str(message_id) if message_id is not None else None,
    )


def load_email(file_path: Path) -> EmailContext:
    """Read an email file, dispatching on its suffix"""
    suffix = file_path.suffix.lower()
    if suffix == ".msg":
        return read_msg_file(file_path)
    if suffix == ".json":
        return read_json_email(file_path)
    raise ValueError(f"Unsupported email file type: {file_path.suffix}")


def read_emails_from_directory(directory: Path) -> List[EmailContext]:
    """
    Read all supported email files from a directory.

    Args:
        directory: Path to directory containing .msg or .json files

    Returns:
        List of EmailContext objects, files that fail to parse are skipped
    """
    emails = []

    email_files = sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
    )

    for email_file in tqdm(email_files, desc="Reading emails"):
        try:
            emails.append(load_email(email_file))
        except Exception as e:
            # Log error but continue processing other files
            logger.warning("Failed to parse %s: %s", email_file, e)
            continue

    return emails


def _parse_email_date(date_value) -> datetime | None:
    """
    Parse email date from various formats.

    Args:
        date_value: datetime, RFC 2822 / ISO string, or None

    Returns:
        datetime object or None
    """
    if date_value is None:
        return None

    if isinstance(date_value, datetime):
        return date_value

    if isinstance(date_value, str):
        try:
            return parsedate_to_datetime(date_value)
        except (TypeError, ValueError):
            pass
        try:
            return datetime.fromisoformat(date_value)
        except ValueError:
            return None

    return None


def _first_recipient(recipient_string: str | None) -> str | None:
    """
    Extract the first recipient address from a recipient list.

    Args:
        recipient_string: Semicolon or comma separated email addresses

    Returns:
        Email address or None
    """
    if not recipient_string:
        return None

    for part in recipient_string.replace(";", ",").split(","):
        part = part.strip()
        if not part:
            continue
        # Extract email from "Name <email>" format if present
        if "<" in part and ">" in part:
            return part[part.index("<") + 1 : part.index(">")]
        return part

    return None
