# helix_alm/codec.py

"""
JSON (de)serialization of the Helix ALM models.

Every model class has a row in ``SCHEMAS`` listing its members: the Python
attribute, the JSON key, the value kind and a presence policy. Members that
are informational (ids defaulting to 0, optional labels, unset containers)
use ``Presence.OMIT_EMPTY`` and are dropped when empty. Members the server
needs to see even when unset use ``Presence.ALWAYS`` and are written as
``null``.

Custom fields are handled separately: every value slot listed in
``FIELD_SLOT_PRESENCE`` is written on every field, with only the slot named
by the field's ``type`` carrying a value. The server treats a missing slot
differently from a ``null`` one on partial updates.
"""

import enum
from collections import namedtuple
from datetime import date, datetime
from decimal import Decimal

import simplejson

from .exceptions import CodecError
from .models import (
    FIELD_VALUE_TYPES,
    AccessToken,
    Attachment,
    AttachmentContainer,
    BaseItem,
    ErrorResponse,
    Event,
    EventContainer,
    Field,
    Folder,
    FoundByContainer,
    FoundByRecord,
    GenerateTestRunParams,
    InlineImage,
    Issue,
    IssuesList,
    Link,
    LinkDefinitionStub,
    LinkedItem,
    LinksContainer,
    MenuItem,
    Paging,
    PagingLink,
    ParentChildLinks,
    Project,
    ProjectList,
    TestRun,
    TestRunSet,
    TextField,
    UpdateEventsResponse,
    UpdateIssuesResponse,
    UpdateTestRunsResponse,
    User,
    Variant,
    VariantMenuItem,
)
from .utils import format_timestamp, parse_timestamp


class Presence(enum.Enum):
    ALWAYS = "always"
    OMIT_EMPTY = "omit_empty"


Scalar = namedtuple("Scalar", ["name", "decode", "encode"])
ListOf = namedtuple("ListOf", ["item"])
Member = namedtuple(
    "Member", ["attr", "key", "kind", "presence"], defaults=(None, Presence.OMIT_EMPTY)
)


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _expect(check, name):
    def convert(value, path):
        if not check(value):
            raise CodecError(
                f"Expected {name}, got {type(value).__name__} {value!r}", path
            )
        return value

    return convert


def _decode_decimal(value, path):
    if isinstance(value, Decimal) or _is_int(value):
        return Decimal(value)
    raise CodecError(f"Expected decimal, got {type(value).__name__} {value!r}", path)


def _decode_date(value, path):
    _expect(lambda v: isinstance(v, str), "date string")(value, path)
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return parse_timestamp(value).date()
    except ValueError:
        raise CodecError(f"Invalid date {value!r}", path)


def _decode_datetime(value, path):
    _expect(lambda v: isinstance(v, str), "date-time string")(value, path)
    try:
        return parse_timestamp(value)
    except ValueError:
        raise CodecError(f"Invalid date-time {value!r}", path)


def _decode_identifier(value, path):
    if isinstance(value, str):
        return value
    if _is_int(value):
        return str(value)
    raise CodecError(f"Expected identifier, got {type(value).__name__} {value!r}", path)


def _encode_date(value, path):
    if isinstance(value, datetime) or not isinstance(value, date):
        raise CodecError(f"Expected date, got {type(value).__name__}", path)
    return value.isoformat()


def _encode_datetime(value, path):
    if not isinstance(value, datetime):
        raise CodecError(f"Expected datetime, got {type(value).__name__}", path)
    return format_timestamp(value)


STRING = Scalar(
    "string",
    _expect(lambda v: isinstance(v, str), "string"),
    _expect(lambda v: isinstance(v, str), "string"),
)
INTEGER = Scalar("integer", _expect(_is_int, "integer"), _expect(_is_int, "integer"))
BOOLEAN = Scalar(
    "boolean",
    _expect(lambda v: isinstance(v, bool), "boolean"),
    _expect(lambda v: isinstance(v, bool), "boolean"),
)
DECIMAL = Scalar(
    "decimal",
    _decode_decimal,
    _expect(lambda v: isinstance(v, Decimal) or _is_int(v), "decimal"),
)
DATE = Scalar("date", _decode_date, _encode_date)
DATETIME = Scalar("dateTime", _decode_datetime, _encode_datetime)
IDENTIFIER = Scalar("identifier", _decode_identifier, _decode_identifier)

ALWAYS = Presence.ALWAYS

_ITEM_MEMBERS = (
    Member("id", "id", INTEGER),
    Member("number", "number", INTEGER),
    Member("tag", "tag", STRING),
    Member("self_link", "self", STRING),
    Member("ttstudio_url", "ttstudioURL", STRING),
    Member("http_url", "httpURL", STRING),
    Member("fields", "fields", ListOf(Field)),
    Member("attachments", "attachments", AttachmentContainer),
    Member("events", "events", EventContainer),
    Member("links", "links", LinksContainer),
)

_UPDATE_ERRORS = Member("errors", "errors", ListOf(ErrorResponse))

SCHEMAS = {
    Project: (
        Member("id", "id", IDENTIFIER),
        Member("name", "name", STRING),
        Member("uuid", "uuid", STRING),
    ),
    ProjectList: (
        Member("projects", "projects", ListOf(Project)),
        Member("projects_loading", "projectsLoading", INTEGER),
    ),
    AccessToken: (
        Member("token_type", "tokenType", STRING),
        Member("expires_on", "expiresOn", STRING),
        Member("access_token", "accessToken", STRING),
    ),
    PagingLink: (
        Member("ref", "ref", STRING),
        Member("href", "href", STRING),
        Member("method", "method", STRING),
    ),
    Paging: (
        Member("page", "page", INTEGER),
        Member("total_pages", "totalPages", INTEGER),
        Member("page_limit", "pageLimit", INTEGER),
        Member("total_count", "totalCount", INTEGER),
        Member("links", "links", ListOf(PagingLink)),
    ),
    InlineImage: (
        Member("content", "content", STRING),
        Member("encoded_file_id", "encodedFileID", STRING),
        Member("source", "source", STRING),
    ),
    TextField: (
        Member("text", "text", STRING),
        Member("is_formatted", "isFormatted", BOOLEAN, ALWAYS),
        Member("inline_images", "inlineImages", ListOf(InlineImage)),
    ),
    MenuItem: (
        Member("id", "id", INTEGER, ALWAYS),
        Member("label", "label", STRING, ALWAYS),
    ),
    VariantMenuItem: (
        Member("id", "id", INTEGER),
        Member("label", "label", STRING, ALWAYS),
    ),
    User: (
        Member("last_name", "lastName", STRING),
        Member("first_name", "firstName", STRING),
        Member("mi", "mi", STRING),
        Member("id", "id", INTEGER),
        Member("username", "username", STRING),
    ),
    Attachment: (
        Member("content", "content", STRING),
        Member("encoded_file_id", "encodedFileID", STRING),
        Member("self_link", "self", STRING),
        Member("id", "id", INTEGER),
        Member("filename", "filename", STRING),
        Member("created", "created", STRING),
        Member("modified", "modified", STRING),
        Member("size", "size", INTEGER),
    ),
    AttachmentContainer: (
        Member("self_link", "self", STRING),
        Member("attachments_data", "attachmentsData", ListOf(Attachment)),
    ),
    FoundByRecord: (
        Member("id", "id", INTEGER),
        Member("found_by", "foundBy", User),
        Member("date_found", "dateFound", STRING),
        Member("version_found", "versionFound", STRING),
        Member("description", "description", TextField),
        Member("attachments", "attachments", AttachmentContainer),
        Member("reproduced", "reproduced", MenuItem),
        Member("steps", "steps", TextField),
        Member("test_config", "testConfig", MenuItem),
        Member("other_config", "otherConfig", TextField),
    ),
    FoundByContainer: (
        Member("self_link", "self", STRING),
        Member("found_by_records_data", "foundByRecordsData", ListOf(FoundByRecord)),
    ),
    Event: (
        Member("self_link", "self", STRING),
        Member("id", "id", INTEGER),
        Member("name", "name", STRING),
        Member("attachments", "attachments", AttachmentContainer),
        Member("fields", "fields", ListOf(Field)),
    ),
    EventContainer: (
        Member("self_link", "self", STRING),
        Member("events_data", "eventsData", ListOf(Event)),
    ),
    LinkDefinitionStub: (
        Member("id", "id", INTEGER),
        Member("name", "name", STRING),
    ),
    LinkedItem: (
        Member("item_id", "itemID", INTEGER),
        Member("item_type", "itemType", STRING),
        Member("is_suspect", "isSuspect", BOOLEAN),
        Member("link", "link", STRING),
    ),
    ParentChildLinks: (
        Member("parent", "parent", LinkedItem),
        Member("children", "children", ListOf(LinkedItem)),
    ),
    Link: (
        Member("id", "id", INTEGER),
        Member("comment", "comment", STRING),
        Member("link_definition", "linkDefinition", LinkDefinitionStub),
        Member("type", "type", STRING),
        Member("peers", "peers", ListOf(LinkedItem)),
        Member("parent_children", "parentChildren", ParentChildLinks),
    ),
    LinksContainer: (
        Member("self_link", "self", STRING),
        Member("links_data", "linksData", ListOf(Link)),
    ),
    BaseItem: _ITEM_MEMBERS,
    Issue: _ITEM_MEMBERS
    + (Member("found_by_records", "foundByRecords", FoundByContainer),),
    TestRun: _ITEM_MEMBERS,
    Folder: (
        Member("path", "path", STRING),
        Member("id", "id", INTEGER),
    ),
    TestRunSet: (
        Member("id", "id", INTEGER),
        Member("label", "label", STRING),
    ),
    Variant: (
        Member("label", "label", STRING),
        Member("menu_item_array", "menuItemArray", ListOf(VariantMenuItem)),
    ),
    GenerateTestRunParams: (
        Member("test_case_ids", "testCaseIDs", ListOf(INTEGER), ALWAYS),
        Member("variants", "variants", ListOf(Variant)),
        Member("folder", "folder", Folder),
        Member("test_run_set", "testRunSet", TestRunSet),
        Member("events_data", "eventsData", ListOf(Event)),
    ),
    IssuesList: (
        Member("issues", "issues", ListOf(Issue)),
        Member("paging", "paging", Paging),
    ),
    ErrorResponse: (
        Member("message", "message", STRING),
        Member("status_code", "statusCode", INTEGER),
        Member("code", "code", STRING),
        Member("error_element_path", "errorElementPath", STRING),
    ),
    UpdateIssuesResponse: (
        _UPDATE_ERRORS,
        Member("issues", "issues", IssuesList),
    ),
    UpdateEventsResponse: (
        _UPDATE_ERRORS,
        Member("events_data", "eventsData", ListOf(Event)),
    ),
    UpdateTestRunsResponse: (
        _UPDATE_ERRORS,
        Member("test_runs", "testRuns", ListOf(TestRun)),
    ),
}

FIELD_MEMBERS = (
    Member("id", "id", INTEGER),
    Member("label", "label", STRING),
    Member("type", "type", STRING, ALWAYS),
)

# JSON kind of each field value slot, keyed by the field ``type`` tag.
FIELD_SLOT_KINDS = {
    "string": STRING,
    "formattedString": TextField,
    "menuItem": MenuItem,
    "menuItemArray": ListOf(MenuItem),
    "editableVersion": STRING,
    "boolean": BOOLEAN,
    "integer": INTEGER,
    "decimal": DECIMAL,
    "date": DATE,
    "dateTime": DATETIME,
    "user": User,
    "userArray": ListOf(User),
}

# Every slot goes out on every field, null unless it is the field's own.
FIELD_SLOT_PRESENCE = {slot: Presence.ALWAYS for slot in FIELD_VALUE_TYPES}


def _is_empty(value):
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, int)):
        return not value
    return False


def _schema_for(value, kind, path):
    if not isinstance(value, kind):
        raise CodecError(
            f"Expected {kind.__name__}, got {type(value).__name__}", path
        )
    schema = SCHEMAS.get(type(value)) or SCHEMAS.get(kind)
    if schema is None:
        raise CodecError(f"No JSON schema for {type(value).__name__}", path)
    return schema


def _to_json(value, kind, path):
    if value is None:
        return None
    if isinstance(kind, Scalar):
        return kind.encode(value, path)
    if isinstance(kind, ListOf):
        if isinstance(value, (str, bytes, dict)) or not hasattr(value, "__iter__"):
            raise CodecError(f"Expected list, got {type(value).__name__}", path)
        return [
            _to_json(item, kind.item, f"{path}[{index}]")
            for index, item in enumerate(value)
        ]
    if kind is Field:
        return _field_to_json(value, path)
    schema = _schema_for(value, kind, path)
    return _members_to_json(value, schema, path)


def _members_to_json(value, members, path):
    data = {}
    for member in members:
        member_value = getattr(value, member.attr)
        if member.presence is Presence.OMIT_EMPTY and _is_empty(member_value):
            continue
        data[member.key] = _to_json(member_value, member.kind, f"{path}.{member.key}")
    return data


def _field_to_json(value, path):
    if not isinstance(value, Field):
        raise CodecError(f"Expected Field, got {type(value).__name__}", path)
    data = _members_to_json(value, FIELD_MEMBERS, path)
    if value.value is not None and value.value.kind != value.type:
        raise CodecError(
            f"Field of type {value.type!r} holds a {value.value.kind!r} value", path
        )
    for slot, presence in FIELD_SLOT_PRESENCE.items():
        if slot == value.type and value.value is not None:
            data[slot] = _to_json(
                value.value.value, FIELD_SLOT_KINDS[slot], f"{path}.{slot}"
            )
        elif presence is Presence.ALWAYS:
            data[slot] = None
    return data


def _from_json(data, kind, path):
    if data is None:
        return None
    if isinstance(kind, Scalar):
        return kind.decode(data, path)
    if isinstance(kind, ListOf):
        if not isinstance(data, list):
            raise CodecError(f"Expected array, got {type(data).__name__}", path)
        return [
            _from_json(item, kind.item, f"{path}[{index}]")
            for index, item in enumerate(data)
        ]
    if not isinstance(data, dict):
        raise CodecError(f"Expected object, got {type(data).__name__}", path)
    if kind is Field:
        return _field_from_json(data, path)
    schema = SCHEMAS.get(kind)
    if schema is None:
        raise CodecError(f"No JSON schema for {kind.__name__}", path)
    kwargs = _members_from_json(data, schema, path)
    try:
        return kind(**kwargs)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Cannot build {kind.__name__}: {e}", path)


def _members_from_json(data, members, path):
    kwargs = {}
    for member in members:
        raw = data.get(member.key)
        if raw is None:
            continue
        kwargs[member.attr] = _from_json(raw, member.kind, f"{path}.{member.key}")
    return kwargs


def _field_from_json(data, path):
    field_type = data.get("type")
    if not isinstance(field_type, str):
        raise CodecError("Field has no type", path)
    value_type = FIELD_VALUE_TYPES.get(field_type)
    if value_type is None:
        raise CodecError(f"Unknown field type {field_type!r}", path)
    kwargs = _members_from_json(data, FIELD_MEMBERS, path)
    payload = _from_json(
        data.get(field_type), FIELD_SLOT_KINDS[field_type], f"{path}.{field_type}"
    )
    try:
        if payload is not None:
            kwargs["value"] = value_type(payload)
        return Field(**kwargs)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Invalid field: {e}", path)


def to_dict(value):
    """Convert a model object to plain JSON-ready data."""
    if isinstance(value, Field):
        return _field_to_json(value, "$")
    return _to_json(value, type(value), "$")


def from_dict(data, target):
    """Build a ``target`` model object from parsed JSON data."""
    if data is None:
        raise CodecError(f"Expected {target.__name__} object, got null", "$")
    return _from_json(data, target, "$")


def loads(payload):
    """Parse UTF-8 JSON bytes (or text) into plain data."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"Response is not valid UTF-8: {e}")
    try:
        return simplejson.loads(payload, use_decimal=True)
    except simplejson.JSONDecodeError as e:
        raise CodecError(f"Invalid JSON: {e}")


def encode(value):
    """Serialize a model object to UTF-8 JSON bytes."""
    return simplejson.dumps(
        to_dict(value), use_decimal=True, ensure_ascii=False
    ).encode("utf-8")


def decode(payload, target):
    """Parse UTF-8 JSON bytes into an instance of ``target``."""
    return from_dict(loads(payload), target)
