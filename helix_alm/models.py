# helix_alm/models.py

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar, List, Optional, Union

from .exceptions import CodecError, FieldTypeError
from .utils import parse_timestamp


@dataclass(frozen=True)
class Project:
    id: str = ""
    name: str = ""
    uuid: str = ""


@dataclass
class ProjectList:
    projects: List[Project] = field(default_factory=list)
    projects_loading: int = 0


@dataclass
class AccessToken:
    token_type: str = "Bearer"
    expires_on: str = ""
    access_token: str = ""

    def __post_init__(self):
        if self.expires_on:
            self.expires_at()

    def expires_at(self) -> Optional[datetime]:
        """UTC expiry time, or None when the server did not send one.

        :raises CodecError: when ``expires_on`` is not a timestamp
        """
        if not self.expires_on:
            return None
        try:
            return parse_timestamp(self.expires_on)
        except ValueError:
            raise CodecError(f"Invalid token expiry {self.expires_on!r}", "expiresOn")

    def is_expired(self, now: Optional[datetime] = None, leeway: float = 0.0) -> bool:
        expires_at = self.expires_at()
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return (expires_at - now).total_seconds() <= leeway


@dataclass
class PagingLink:
    ref: str = ""
    href: str = ""
    method: str = "GET"


@dataclass
class Paging:
    page: int = 0
    total_pages: int = 0
    page_limit: int = 0
    total_count: int = 0
    links: List[PagingLink] = field(default_factory=list)

    def link(self, ref: str) -> Optional[PagingLink]:
        return next((link for link in self.links if link.ref == ref), None)


@dataclass
class InlineImage:
    content: Optional[str] = None
    encoded_file_id: Optional[str] = None
    source: Optional[str] = None


@dataclass
class TextField:
    """Text of a field, plain or HTML with links to inline images."""

    text: Optional[str] = None
    is_formatted: bool = False
    inline_images: List[InlineImage] = field(default_factory=list)


@dataclass
class MenuItem:
    id: int = 0
    label: str = ""


@dataclass
class VariantMenuItem(MenuItem):
    """Menu item whose id is left out of the request when it is 0."""

    pass


@dataclass
class User:
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    mi: Optional[str] = None
    id: int = 0
    username: Optional[str] = None


# Field values. One class per value kind; ``kind`` is the ``type`` tag the
# server uses and also the name of the JSON slot that carries the value.


def _require(kind, value, expected, name):
    if isinstance(value, bool) and bool not in expected:
        raise TypeError(f"{kind} value must be {name}, got bool")
    if not isinstance(value, expected):
        raise TypeError(f"{kind} value must be {name}, got {type(value).__name__}")


def _require_list(kind, values, expected, name):
    if isinstance(values, (str, bytes)) or not hasattr(values, "__iter__"):
        raise TypeError(f"{kind} value must be a list of {name}")
    values = list(values)
    for item in values:
        _require(kind, item, expected, name)
    return values


@dataclass(frozen=True)
class StringValue:
    kind: ClassVar[str] = "string"
    value: str

    def __post_init__(self):
        _require(self.kind, self.value, (str,), "str")


@dataclass(frozen=True)
class FormattedTextValue:
    kind: ClassVar[str] = "formattedString"
    value: TextField

    def __post_init__(self):
        _require(self.kind, self.value, (TextField,), "TextField")


@dataclass(frozen=True)
class MenuItemValue:
    kind: ClassVar[str] = "menuItem"
    value: MenuItem

    def __post_init__(self):
        _require(self.kind, self.value, (MenuItem,), "MenuItem")


@dataclass(frozen=True)
class MenuItemArrayValue:
    kind: ClassVar[str] = "menuItemArray"
    value: List[MenuItem]

    def __post_init__(self):
        items = _require_list(self.kind, self.value, (MenuItem,), "MenuItem")
        object.__setattr__(self, "value", items)


@dataclass(frozen=True)
class VersionValue:
    kind: ClassVar[str] = "editableVersion"
    value: str

    def __post_init__(self):
        _require(self.kind, self.value, (str,), "str")


@dataclass(frozen=True)
class BooleanValue:
    kind: ClassVar[str] = "boolean"
    value: bool

    def __post_init__(self):
        _require(self.kind, self.value, (bool,), "bool")


@dataclass(frozen=True)
class IntegerValue:
    kind: ClassVar[str] = "integer"
    value: int

    def __post_init__(self):
        _require(self.kind, self.value, (int,), "int")


@dataclass(frozen=True)
class DecimalValue:
    kind: ClassVar[str] = "decimal"
    value: Decimal

    def __post_init__(self):
        _require(self.kind, self.value, (Decimal, int), "Decimal")
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(self.value))
        if not self.value.is_finite():
            raise ValueError(f"{self.kind} value must be finite, got {self.value}")


@dataclass(frozen=True)
class DateValue:
    kind: ClassVar[str] = "date"
    value: date

    def __post_init__(self):
        # datetime is a date subclass, so rule it out explicitly
        if isinstance(self.value, datetime):
            raise TypeError(f"{self.kind} value must be date, got datetime")
        _require(self.kind, self.value, (date,), "date")


@dataclass(frozen=True)
class DateTimeValue:
    kind: ClassVar[str] = "dateTime"
    value: datetime

    def __post_init__(self):
        _require(self.kind, self.value, (datetime,), "datetime")
        # naive values are taken as UTC, as they are when decoded
        if self.value.tzinfo is None:
            object.__setattr__(self, "value", self.value.replace(tzinfo=timezone.utc))


@dataclass(frozen=True)
class UserValue:
    kind: ClassVar[str] = "user"
    value: User

    def __post_init__(self):
        _require(self.kind, self.value, (User,), "User")


@dataclass(frozen=True)
class UserArrayValue:
    kind: ClassVar[str] = "userArray"
    value: List[User]

    def __post_init__(self):
        users = _require_list(self.kind, self.value, (User,), "User")
        object.__setattr__(self, "value", users)


FieldValue = Union[
    StringValue,
    FormattedTextValue,
    MenuItemValue,
    MenuItemArrayValue,
    VersionValue,
    BooleanValue,
    IntegerValue,
    DecimalValue,
    DateValue,
    DateTimeValue,
    UserValue,
    UserArrayValue,
]

FIELD_VALUE_TYPES = {
    cls.kind: cls
    for cls in (
        StringValue,
        FormattedTextValue,
        MenuItemValue,
        MenuItemArrayValue,
        VersionValue,
        BooleanValue,
        IntegerValue,
        DecimalValue,
        DateValue,
        DateTimeValue,
        UserValue,
        UserArrayValue,
    )
}


@dataclass
class Field:
    """A custom field value on an item or event.

    ``type`` names the value kind; ``value`` is None when the field is empty
    and otherwise a value object of that same kind. The field is addressed
    on the server by ``id`` or ``label``, so at least one must be set.
    """

    type: str
    id: int = 0
    label: Optional[str] = None
    value: Optional[FieldValue] = None

    def __post_init__(self):
        if self.type not in FIELD_VALUE_TYPES:
            raise ValueError(f"Unknown field type: {self.type!r}")
        if not self.id and not self.label:
            raise ValueError("A field needs an id or a label")
        self._check_kind(self.value)

    @classmethod
    def of(cls, value: FieldValue, label: Optional[str] = None, id: int = 0):
        return cls(type=value.kind, id=id, label=label, value=value)

    def _check_kind(self, value):
        if value is not None and getattr(value, "kind", None) != self.type:
            raise FieldTypeError(
                f"Field {self.label or self.id} is of type {self.type!r}, "
                f"cannot hold {type(value).__name__}"
            )

    def set(self, value: Optional[FieldValue]):
        self._check_kind(value)
        self.value = value

    def clear(self):
        self.value = None

    @property
    def payload(self):
        return None if self.value is None else self.value.value


@dataclass
class Attachment:
    content: Optional[str] = None
    encoded_file_id: Optional[str] = None
    self_link: Optional[str] = None
    id: int = 0
    filename: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None
    size: int = 0


@dataclass
class AttachmentContainer:
    self_link: Optional[str] = None
    attachments_data: List[Attachment] = field(default_factory=list)


@dataclass
class FoundByRecord:
    id: int = 0
    found_by: Optional[User] = None
    date_found: Optional[str] = None
    version_found: Optional[str] = None
    description: Optional[TextField] = None
    attachments: Optional[AttachmentContainer] = None
    reproduced: Optional[MenuItem] = None
    steps: Optional[TextField] = None
    test_config: Optional[MenuItem] = None
    other_config: Optional[TextField] = None


@dataclass
class FoundByContainer:
    self_link: Optional[str] = None
    found_by_records_data: List[FoundByRecord] = field(default_factory=list)


@dataclass
class Event:
    """A workflow event such as Comment, Assign or Pass."""

    name: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    self_link: Optional[str] = None
    id: int = 0
    attachments: Optional[AttachmentContainer] = None


@dataclass
class EventContainer:
    self_link: Optional[str] = None
    events_data: List[Event] = field(default_factory=list)


@dataclass
class LinkDefinitionStub:
    id: int = 0
    name: Optional[str] = None


@dataclass
class LinkedItem:
    item_id: int = 0
    item_type: Optional[str] = None
    is_suspect: bool = False
    link: Optional[str] = None


@dataclass
class ParentChildLinks:
    parent: Optional[LinkedItem] = None
    children: List[LinkedItem] = field(default_factory=list)


@dataclass
class Link:
    id: int = 0
    comment: Optional[str] = None
    link_definition: Optional[LinkDefinitionStub] = None
    type: Optional[str] = None
    peers: List[LinkedItem] = field(default_factory=list)
    parent_children: Optional[ParentChildLinks] = None


@dataclass
class LinksContainer:
    self_link: Optional[str] = None
    links_data: List[Link] = field(default_factory=list)


@dataclass
class BaseItem:
    id: int = 0
    number: int = 0
    tag: Optional[str] = None
    self_link: Optional[str] = None
    ttstudio_url: Optional[str] = None
    http_url: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    attachments: Optional[AttachmentContainer] = None
    events: Optional[EventContainer] = None
    links: Optional[LinksContainer] = None

    def get_field(self, key: Union[str, int]) -> Optional[Field]:
        """Find a field by label (str) or id (int)."""
        for item_field in self.fields:
            if isinstance(key, str) and item_field.label == key:
                return item_field
            if isinstance(key, int) and item_field.id == key:
                return item_field
        return None


@dataclass
class Issue(BaseItem):
    found_by_records: Optional[FoundByContainer] = None

    def add_found_by_record(self, record: FoundByRecord):
        """Append a record after the existing ones, keeping their order."""
        if self.found_by_records is None:
            self.found_by_records = FoundByContainer()
        self.found_by_records.found_by_records_data.append(record)


@dataclass
class TestRun(BaseItem):
    __test__ = False


@dataclass
class Folder:
    path: Optional[str] = None
    id: int = 0


@dataclass
class TestRunSet:
    __test__ = False

    id: int = 0
    label: Optional[str] = None


@dataclass
class Variant:
    label: Optional[str] = None
    menu_item_array: List[VariantMenuItem] = field(default_factory=list)


@dataclass
class GenerateTestRunParams:
    test_case_ids: List[int]
    variants: List[Variant] = field(default_factory=list)
    folder: Optional[Folder] = None
    test_run_set: Optional[TestRunSet] = None
    events_data: List[Event] = field(default_factory=list)

    def __post_init__(self):
        if not self.test_case_ids:
            raise ValueError("At least one test case id is required")
        for test_case_id in self.test_case_ids:
            _require("testCaseIDs", test_case_id, (int,), "int")


@dataclass
class IssuesList:
    issues: List[Issue] = field(default_factory=list)
    paging: Optional[Paging] = None


@dataclass
class ErrorResponse:
    message: Optional[str] = None
    status_code: int = 0
    code: Optional[str] = None
    error_element_path: Optional[str] = None


@dataclass
class UpdateResponse:
    errors: List[ErrorResponse] = field(default_factory=list)


@dataclass
class UpdateIssuesResponse(UpdateResponse):
    issues: Optional[IssuesList] = None


@dataclass
class UpdateEventsResponse(UpdateResponse):
    events_data: List[Event] = field(default_factory=list)


@dataclass
class UpdateTestRunsResponse(UpdateResponse):
    test_runs: List[TestRun] = field(default_factory=list)
