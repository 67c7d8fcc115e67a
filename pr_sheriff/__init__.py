"""PR Sheriff: reviewer assignment and Slack reminders for GitHub pull requests."""

__version__ = "0.1.0"
