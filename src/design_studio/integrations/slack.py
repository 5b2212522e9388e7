"""Slack review notices for finished design requests."""

from design_studio.models import DesignRequest

PROMPT_PREVIEW = 200


class SlackError(Exception):
    """Raised when a notice cannot be posted."""


def send_message(
    token: str | None,
    channel: str,
    text: str,
    blocks: list[dict] | None = None,
) -> str:
    """Post to a channel and return the message timestamp."""
    if not token:
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    from slack_sdk import WebClient
    from slack_sdk.errors import SlackApiError

    try:
        response = WebClient(token=token).chat_postMessage(
            channel=channel, text=text, blocks=blocks
        )
    except SlackApiError as e:
        raise SlackError(f"Slack rejected the notice: {e.response['error']}") from e
    return response["ts"]


def format_review_notification(request: DesignRequest) -> list[dict]:
    """Blocks for a request that just reached review, failed or not."""
    prompt = request.prompt
    if len(prompt) > PROMPT_PREVIEW:
        prompt = prompt[: PROMPT_PREVIEW - 3] + "..."
    if request.error:
        headline = f":x: *Request needs attention*\n{request.error}"
    else:
        headline = ":eyes: *Request ready for review*"
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"{headline}\n>{prompt}\n"
                    f"Project: `{request.project_id}` | Request: `{request.id}`"
                ),
            },
        }
    ]
