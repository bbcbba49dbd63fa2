"""Custom exception hierarchy for meetingcal.

Data problems inside a single template never escape the expander; these types
exist so each layer can catch exactly what it can recover from.
"""


class MeetingCalError(Exception):
    """Base exception for all meetingcal errors."""


class TemplateError(MeetingCalError):
    """A meeting template is malformed.

    Raised when:
    - a date field cannot be parsed
    - ``is_recurring`` is set without a pattern or day
    - the persisted status or a recurrence field holds an unknown value

    The expander catches this per template and skips the record.
    """

    def __init__(self, message: str, template_id: str | None = None) -> None:
        super().__init__(message)
        self.template_id = template_id


class RecurrenceError(MeetingCalError):
    """A recurrence rule cannot be built or walked."""


class StoreFetchError(MeetingCalError):
    """The template store could not return records.

    Raised when:
    - the HTTP request to the hosted database fails or times out
    - the response body is not a JSON list
    - a template file cannot be read or parsed

    Callers surface an empty calendar plus an error indicator.
    """


class ConfigError(MeetingCalError):
    """Configuration is missing or invalid for the requested store."""


class WindowError(MeetingCalError):
    """A view request cannot be turned into a query window.

    Raised for unknown view modes or unparsable pivot dates. Should result in
    HTTP 400 Bad Request.
    """
