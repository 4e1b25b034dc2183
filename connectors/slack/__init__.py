"""Slack chat connector."""

from connectors.slack.client import SlackNotifier, SLACK_POST_MESSAGE_URL

__all__ = ["SlackNotifier", "SLACK_POST_MESSAGE_URL"]
