# helix_alm/workflows/issue_updater.py

from datetime import datetime, timezone

from ..api import HelixALMAPI
from ..exceptions import FieldNotFoundError
from ..logger import logger
from ..models import (
    AccessToken,
    FieldValue,
    FoundByRecord,
    TextField,
    UpdateIssuesResponse,
    User,
)


class IssueUpdater:
    def __init__(self, helix_api: HelixALMAPI, project: str):
        self.helix_api = helix_api
        self.project = project

    async def update_field(
        self, token: AccessToken, issue_id: int, label: str, value: FieldValue
    ) -> UpdateIssuesResponse:
        """
        Fetch an issue with only the given field, change the value and save it.

        :param token: Access token for the project
        :param issue_id: Issue id (not the issue number)
        :param label: Field label, e.g. ``Priority``
        :param value: New value; must match the field's type
        :return: UpdateIssuesResponse
        """
        logger.info(f"Updating {label} on issue {issue_id}")
        issue = await self.helix_api.get_issue(
            self.project, token, issue_id, fields=[label]
        )

        field = issue.get_field(label)
        if field is None:
            raise FieldNotFoundError(f"Issue {issue_id} has no field {label!r}")
        field.set(value)

        response = await self.helix_api.save_issue(self.project, token, issue)
        logger.info(f"Issue {issue.tag or issue_id} updated")
        return response

    async def add_found_by_record(
        self, token: AccessToken, issue_id: int, record: FoundByRecord
    ) -> UpdateIssuesResponse:
        """
        Append a Found by record to an issue, keeping the existing records.

        :param token: Access token for the project
        :param issue_id: Issue id
        :param record: The new record
        :return: UpdateIssuesResponse
        """
        logger.info(f"Adding Found by record to issue {issue_id}")
        issue = await self.helix_api.get_issue(
            self.project, token, issue_id, expand=["foundByRecords"]
        )
        issue.add_found_by_record(record)

        response = await self.helix_api.save_issue(self.project, token, issue)
        logger.info(
            f"Issue {issue.tag or issue_id} now has "
            f"{len(issue.found_by_records.found_by_records_data)} Found by records"
        )
        return response


def new_found_by_record(username, description, version_found=None, found_on=None):
    """Build a Found by record dated today (UTC) unless ``found_on`` is given."""
    found_on = found_on or datetime.now(timezone.utc).date()
    return FoundByRecord(
        found_by=User(username=username),
        date_found=found_on.isoformat(),
        description=TextField(text=description),
        version_found=version_found,
    )
