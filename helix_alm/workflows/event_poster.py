# helix_alm/workflows/event_poster.py

from ..api import HelixALMAPI
from ..logger import logger
from ..models import AccessToken, Event, Field, StringValue, UpdateEventsResponse


def notes_event(name, notes):
    """A workflow event carrying a single ``Notes`` string field."""
    return Event(name=name, fields=[Field.of(StringValue(notes), label="Notes")])


class EventPoster:
    def __init__(self, helix_api: HelixALMAPI, project: str):
        self.helix_api = helix_api
        self.project = project

    async def add_comment(
        self, token: AccessToken, issue_id: int, text: str
    ) -> UpdateEventsResponse:
        logger.info(f"Adding Comment event to issue {issue_id}")
        response = await self.helix_api.add_events(
            self.project, token, issue_id, [notes_event("Comment", text)]
        )
        logger.info(f"Added {len(response.events_data)} event(s) to issue {issue_id}")
        return response
