# helix_alm/utils.py

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import quote


def parse_timestamp(value):
    """
    Parse an ISO-8601 timestamp as sent by the Helix ALM server.

    HTTP dates (``Thu, 08 Aug 2019 19:52:50 GMT``) are accepted as well.
    Naive timestamps are taken to be UTC.

    :param value: Timestamp string, e.g. ``2019-08-08T19:52:50Z``
    :return: timezone-aware datetime
    :raises ValueError: when the value is neither form
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value):
    """Render a datetime for the API, using ``Z`` for UTC."""
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def comma_list(value):
    """Join a list of names for ``fields``/``expand`` query parameters."""
    if value is None or isinstance(value, str):
        return value
    return ",".join(str(item) for item in value)


def path_segment(value):
    """Quote a project name or id for use as a single URL path segment."""
    return quote(str(value), safe="")
