import re
from datetime import datetime, timedelta, timezone

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class DateTimePlugin:
    """Plugin that gives the model the current date and time."""

    def __init__(self, timezone_offset=0, timezone_name="UTC", clock=None):
        """Initialize with timezone settings.

        Parameters
        ----------
        timezone_offset : int, optional
            Minutes offset from UTC (default: 0)
        timezone_name : str, optional
            Timezone name for display (default: "UTC")
        clock : callable, optional
            Returns the current aware datetime; used by tests
        """
        self.timezone_name = timezone_name
        self.timezone = timezone(timedelta(minutes=timezone_offset))
        self._clock = clock or (lambda: datetime.now(self.timezone))

    def get_current_datetime(self) -> dict:
        """Return the template values for the current moment."""
        now = self._clock()
        return {
            "CURRENT_DATE": f"{now:%B} {now.day}, {now.year}",
            "CURRENT_TIME": f"{now:%H:%M:%S} {self.timezone_name}",
            "DAY_OF_WEEK": f"{now:%A}",
        }

    def render(self, template: str) -> str:
        """Replace {{CURRENT_DATE}}-style placeholders; unknown ones are left alone."""
        values = self.get_current_datetime()
        return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)

    def hook_modify_system_prompt(self, prompt: str) -> str:
        """Fill date placeholders in the assembled system prompt."""
        return self.render(prompt)

    def hook_provide_system_prompt(self):
        return self.render(
            "## Current Date and Time\n\n"
            "Today is {{DAY_OF_WEEK}}, {{CURRENT_DATE}}. The current time is {{CURRENT_TIME}}.\n"
            "Use this when answering questions about recent or upcoming events."
        )
