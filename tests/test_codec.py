import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from helix_alm import codec
from helix_alm.exceptions import CodecError
from helix_alm.models import (
    FIELD_VALUE_TYPES,
    AccessToken,
    BooleanValue,
    DateTimeValue,
    DateValue,
    DecimalValue,
    Event,
    EventContainer,
    Field,
    FormattedTextValue,
    GenerateTestRunParams,
    InlineImage,
    IntegerValue,
    Issue,
    IssuesList,
    MenuItem,
    MenuItemArrayValue,
    MenuItemValue,
    Project,
    ProjectList,
    StringValue,
    TestRunSet,
    TextField,
    User,
    UserArrayValue,
    UserValue,
    Variant,
    VariantMenuItem,
    VersionValue,
)

FIELD_SAMPLES = [
    Field.of(StringValue("Crash on save"), label="Summary", id=1),
    Field.of(
        FormattedTextValue(
            TextField(
                text='<p>See <img src="cid:abc"></p>',
                is_formatted=True,
                inline_images=[
                    InlineImage(content="aGVsbG8=", encoded_file_id="abc", source="shot.png")
                ],
            )
        ),
        label="Description",
    ),
    Field.of(MenuItemValue(MenuItem(id=3, label="Before Beta")), label="Priority"),
    Field.of(
        MenuItemArrayValue([MenuItem(id=1, label="Windows"), MenuItem(id=2, label="Linux")]),
        label="Platforms",
    ),
    Field.of(VersionValue("2019.2"), label="Version"),
    Field.of(BooleanValue(False), label="Regression"),
    Field.of(IntegerValue(2 ** 62), label="Customer Count"),
    Field.of(DecimalValue(Decimal("12345678901234567890.123456789")), label="Estimate"),
    Field.of(DateValue(date(2019, 8, 8)), label="Due Date"),
    Field.of(
        DateTimeValue(datetime(2019, 8, 8, 19, 52, 50, tzinfo=timezone.utc)),
        label="Date Entered",
    ),
    Field.of(
        UserValue(User(first_name="Ann", last_name="Lee", id=7, username="alee")),
        label="Assigned To",
    ),
    Field.of(
        UserArrayValue([User(id=7, username="alee"), User(id=9, username="bkim")]),
        label="Reviewers",
    ),
]


@pytest.mark.parametrize("field", FIELD_SAMPLES, ids=lambda f: f.type)
def test_field_round_trip_writes_every_slot(field):
    data = json.loads(codec.encode(field))

    assert data["type"] == field.type
    assert set(FIELD_VALUE_TYPES) <= set(data)
    for slot in FIELD_VALUE_TYPES:
        if slot != field.type:
            assert data[slot] is None, slot
    assert data[field.type] is not None

    assert codec.decode(codec.encode(field), Field) == field


def test_empty_field_writes_null_for_its_own_slot():
    field = Field(type="menuItem", label="Priority")

    data = codec.to_dict(field)

    assert data["menuItem"] is None
    assert "id" not in data
    assert data["label"] == "Priority"


def test_field_without_label_keeps_id():
    data = codec.to_dict(Field.of(StringValue("x"), id=12))

    assert data["id"] == 12
    assert "label" not in data


def test_decimal_keeps_full_precision_on_the_wire():
    field = Field.of(DecimalValue(Decimal("0.1000000000000000000000001")), label="Ratio")

    payload = codec.encode(field)

    assert b'"decimal": 0.1000000000000000000000001' in payload
    assert codec.decode(payload, Field).payload == Decimal("0.1000000000000000000000001")


def test_datetime_is_written_with_z_suffix():
    field = Field.of(
        DateTimeValue(datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)), label="When"
    )

    assert codec.to_dict(field)["dateTime"] == "2020-01-02T03:04:05Z"


def test_naive_datetime_is_taken_as_utc():
    field = Field.of(DateTimeValue(datetime(2020, 1, 2, 3, 4, 5)), label="When")

    assert codec.to_dict(field)["dateTime"] == "2020-01-02T03:04:05Z"
    assert codec.decode(codec.encode(field), Field) == field


def test_decode_token_with_invalid_expiry():
    with pytest.raises(CodecError, match="Invalid token expiry"):
        codec.decode(b'{"accessToken": "abc123", "expiresOn": "soon"}', AccessToken)


def test_menu_item_always_writes_id_and_label():
    assert codec.to_dict(MenuItem()) == {"id": 0, "label": ""}


def test_variant_menu_item_omits_zero_id():
    assert codec.to_dict(VariantMenuItem(label="Windows")) == {"label": "Windows"}
    assert codec.to_dict(VariantMenuItem(id=4, label="Web")) == {"id": 4, "label": "Web"}


def test_text_field_always_writes_is_formatted():
    assert codec.to_dict(TextField()) == {"isFormatted": False}
    assert codec.to_dict(TextField(text="hi")) == {"text": "hi", "isFormatted": False}


def test_issue_omits_unset_members():
    issue = Issue(id=1, fields=[Field.of(StringValue("x"), label="Summary")])

    data = codec.to_dict(issue)

    assert set(data) == {"id", "fields"}


def test_generate_test_run_params_body():
    params = GenerateTestRunParams(
        test_case_ids=[1],
        variants=[
            Variant(
                label="Operating System",
                menu_item_array=[VariantMenuItem(label="Windows")],
            )
        ],
        test_run_set=TestRunSet(label="Alpha 1 Tests"),
        events_data=[
            Event(name="Pass", fields=[Field.of(StringValue("Passed by REST API"), label="Notes")])
        ],
    )

    data = codec.to_dict(params)

    assert data["testCaseIDs"] == [1]
    assert data["variants"] == [
        {"label": "Operating System", "menuItemArray": [{"label": "Windows"}]}
    ]
    assert data["testRunSet"] == {"label": "Alpha 1 Tests"}
    assert data["eventsData"][0]["name"] == "Pass"
    assert data["eventsData"][0]["fields"][0]["string"] == "Passed by REST API"
    assert "folder" not in data


def test_non_ascii_text_is_utf8():
    payload = codec.encode(Field.of(StringValue("Überprüfung ✓"), label="Summary"))

    assert "Überprüfung ✓".encode("utf-8") in payload


def test_decode_issues_list():
    payload = json.dumps(
        {
            "issues": [
                {
                    "id": 1,
                    "number": 11,
                    "tag": "IS-11",
                    "ttstudioURL": "ttstudio://localhost:99/Traditional%20Template/dfct?recordID=1",
                    "fields": [
                        {"id": 5, "label": "Summary", "type": "string", "string": "Crash"},
                        {"id": 6, "label": "Priority", "type": "menuItem", "menuItem": None},
                    ],
                }
            ],
            "paging": {
                "page": 1,
                "totalPages": 3,
                "pageLimit": 1,
                "totalCount": 3,
                "links": [{"ref": "next", "href": "issues?page=2&pageLimit=1", "method": "GET"}],
            },
        }
    )

    issues = codec.decode(payload, IssuesList)

    issue = issues.issues[0]
    assert issue.tag == "IS-11"
    assert issue.ttstudio_url.startswith("ttstudio://")
    assert issue.get_field("Summary").payload == "Crash"
    assert issue.get_field(6).value is None
    assert issues.paging.link("next").href == "issues?page=2&pageLimit=1"
    assert issues.paging.link("prev") is None


def test_decode_project_ids_as_strings():
    projects = codec.decode(
        b'{"projects": [{"id": 4, "name": "Sample", "uuid": "u-1"}, {"id": "5", "name": "Other"}]}',
        ProjectList,
    )

    assert projects.projects == [
        Project(id="4", name="Sample", uuid="u-1"),
        Project(id="5", name="Other"),
    ]


def test_decode_ignores_unknown_keys():
    token = codec.decode(
        b'{"tokenType": "Bearer", "accessToken": "abc123", "extra": {"nested": 1}}',
        AccessToken,
    )

    assert token.access_token == "abc123"
    assert token.expires_on == ""


def test_decode_empty_object_gives_defaults():
    assert codec.decode(b"{}", Issue) == Issue()
    assert codec.decode(b"{}", EventContainer) == EventContainer()


def test_decode_invalid_json():
    with pytest.raises(CodecError, match="Invalid JSON"):
        codec.decode(b"{not json", Issue)


def test_decode_invalid_utf8():
    with pytest.raises(CodecError, match="UTF-8"):
        codec.decode(b'{"tag": "\xff"}', Issue)


def test_decode_null_document():
    with pytest.raises(CodecError):
        codec.decode(b"null", Issue)


def test_decode_type_mismatch_reports_path():
    with pytest.raises(CodecError) as exc_info:
        codec.decode(b'{"id": "one"}', Issue)

    assert exc_info.value.path == "$.id"


def test_decode_field_slot_mismatch_reports_path():
    payload = b'{"fields": [{"label": "Count", "type": "integer", "integer": "12"}]}'

    with pytest.raises(CodecError) as exc_info:
        codec.decode(payload, Issue)

    assert exc_info.value.path == "$.fields[0].integer"


def test_decode_unknown_field_type():
    with pytest.raises(CodecError, match="Unknown field type"):
        codec.decode(b'{"label": "X", "type": "hologram", "hologram": 1}', Field)


def test_decode_field_without_id_or_label():
    with pytest.raises(CodecError, match="Invalid field"):
        codec.decode(b'{"type": "string", "string": "x"}', Field)


def test_decode_boolean_is_not_an_integer():
    with pytest.raises(CodecError):
        codec.decode(b'{"label": "Count", "type": "integer", "integer": true}', Field)


def test_decode_array_where_object_expected():
    with pytest.raises(CodecError) as exc_info:
        codec.decode(b'{"foundByRecords": []}', Issue)

    assert exc_info.value.path == "$.foundByRecords"


def test_encode_rejects_mistyped_member():
    issue = Issue(id="1")

    with pytest.raises(CodecError) as exc_info:
        codec.encode(issue)

    assert exc_info.value.path == "$.id"
