"""
Troubleshooting and housekeeping prompts.

Each prompt renders a user message that walks the model through the tools
it should call. Non-string argument values fall back to their defaults.
"""

from typing import List

from ..errors import InvalidParamsError
from ._internal.registry import PromptArgument, prompt

DEFAULT_INSTANCE = "default"

INSTANCE_ARGUMENT = PromptArgument(
    name="instance", description="Instance name (optional)", required=False
)

RULES_OF_ENGAGEMENT = """As an AI agent interacting with the qBittorrent MCP server, you must adhere to the following Rules of Engagement:

1. **State Verification**: Always verify the current state of a torrent (via `list_torrents` or resources) before performing actions like pause, resume, or delete.
2. **Destructive Actions**: Clearly inform the user and obtain confirmation before calling `delete_torrent` or `shutdown_app`. For these "destructive" actions, use the `destructiveHint` annotation or require a separate confirmation step.
3. **Search Etiquette**: Search is asynchronous. Use `get_search_results` for polling and always call `stop_search` once finished to save resources.
4. **Error Handling**: Treat errors as information for self-correction. Return helpful hints and use `isError: true` to prevent hallucination.
5. **Idempotency**: Avoid redundant commands (e.g., do not pause an already paused torrent).
6. **Semantic Feedback**: Translate technical tool results into meaningful context for the user.
7. **Security**: Never expose sensitive credentials or session cookies in logs or to the user."""


def _str_arg(args: dict, name: str, default=None):
    value = args.get(name)
    return value if isinstance(value, str) else default


def _message(role: str, text: str) -> dict:
    return {"role": role, "content": {"type": "text", "text": text}}


def _troubleshooting_text(issue_type: str, torrent_hash, instance: str) -> str:
    if issue_type in ("stalled", "slow"):
        if torrent_hash is None:
            raise InvalidParamsError("Missing hash for stalled/slow troubleshooting")
        return (
            f"I have a torrent with hash '{torrent_hash}' on instance '{instance}' "
            f"that is {issue_type} . Please investigate it. Follow these steps:\n"
            "1. Check the torrent details using 'inspect_torrent'.\n"
            "2. Look for global limits or mode using 'get_system_info'.\n"
            "After investigating, suggest specific fixes (like re-announcing, toggling "
            "sequential download, or changing limits via 'manage_torrents')."
        )
    if issue_type == "connection":
        return (
            f"I think I have connection issues on instance '{instance}'. Please check "
            "my DHT node count and connection status via 'get_system_info', and verify "
            "if alternative speed limits are accidentally enabled."
        )
    return (
        f"Please provide a general health check for instance '{instance}'. Check "
        "global transfer info and list active torrents to identify any potential issues."
    )


@prompt(
    description="Unified troubleshooting for various torrent issues (stalled, slow, connection, etc.)",
    arguments=[
        PromptArgument(
            name="hash",
            description="Torrent hash to troubleshoot (optional for general connection issues)",
            required=False,
        ),
        PromptArgument(
            name="issue_type",
            description="Type of issue: 'stalled', 'slow', 'connection', or 'general'",
            required=True,
        ),
        INSTANCE_ARGUMENT,
    ],
)
def troubleshoot_torrent(args: dict) -> dict:
    """Guide the model through diagnosing a stalled, slow or unreachable torrent."""
    instance = _str_arg(args, "instance", DEFAULT_INSTANCE)
    issue_type = _str_arg(args, "issue_type", "general")
    text = _troubleshooting_text(issue_type, _str_arg(args, "hash"), instance)
    return {
        "description": f"Troubleshooting for {issue_type} issue on instance {instance}",
        "messages": [_message("user", text)],
    }


@prompt(
    description="Check if there is enough disk space for current downloads",
    arguments=[INSTANCE_ARGUMENT],
)
def analyze_disk_space(args: dict) -> dict:
    """Compare free disk space against the size of active downloads."""
    instance = _str_arg(args, "instance", DEFAULT_INSTANCE)
    text = (
        f"I want to check if I have enough disk space for my downloads on instance "
        f"'{instance}'. Please check the current free space on disk and compare it "
        "with the total size of active/downloading torrents. You can get global "
        "transfer info and list all torrents to calculate the required space."
    )
    return {
        "description": f"Analyze disk space on instance {instance}",
        "messages": [_message("user", text)],
    }


@prompt(
    name="rules-of-engagement",
    description="Get the behavioral rules and best practices for interacting with this qBittorrent MCP server",
)
def rules_of_engagement(args: dict) -> dict:
    """Behavioral rules for agents driving this server."""
    messages: List[dict] = [
        _message("user", "Please provide the Rules of Engagement for this MCP server."),
        _message("assistant", RULES_OF_ENGAGEMENT),
    ]
    return {
        "description": "Rules of Engagement for qBittorrent MCP",
        "messages": messages,
    }
