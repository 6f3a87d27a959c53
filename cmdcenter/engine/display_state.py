"""Hook event → display state mapping.

This table is the core's whole output vocabulary:

    PreToolUse (question tool)      -> question
    PreToolUse (any other tool)     -> busy
    SessionStart                    -> busy
    Stop                            -> done
    Notification permission_prompt  -> permission
    Notification idle_prompt        -> done
    Notification (other)            -> no change
    UserPromptSubmit                -> busy
    PermissionRequest               -> permission

Anything else produces no state change.
"""
from __future__ import annotations

from typing import Any

from .models import DisplayState, HookEvent

QUESTION_TOOL_NAME = "AskUserQuestion"

_NOTIFICATION_STATES: dict[str, DisplayState] = {
    "permission_prompt": DisplayState.PERMISSION,
    # Agent has been waiting on the user past its idle threshold
    "idle_prompt": DisplayState.DONE,
}

_EVENT_STATES: dict[str, DisplayState] = {
    HookEvent.SESSION_START.value: DisplayState.BUSY,
    HookEvent.STOP.value: DisplayState.DONE,
    HookEvent.USER_PROMPT_SUBMIT.value: DisplayState.BUSY,
    HookEvent.PERMISSION_REQUEST.value: DisplayState.PERMISSION,
}


def display_state_for_event(
    event_name: str | None,
    tool_name: str | None = None,
    notification_type: str | None = None,
    question_tool_name: str = QUESTION_TOOL_NAME,
) -> DisplayState | None:
    """Map one lifecycle event to the state the UI should show."""
    if not event_name:
        return None
    if event_name == HookEvent.PRE_TOOL_USE.value:
        if tool_name == question_tool_name:
            return DisplayState.QUESTION
        return DisplayState.BUSY
    if event_name == HookEvent.NOTIFICATION.value:
        return _NOTIFICATION_STATES.get(notification_type or "")
    return _EVENT_STATES.get(event_name)


def display_state_for_hook(
    payload: dict[str, Any],
    question_tool_name: str = QUESTION_TOOL_NAME,
) -> DisplayState | None:
    """Map a raw hook stdin payload to a display state."""
    return display_state_for_event(
        payload.get("hook_event_name"),
        tool_name=payload.get("tool_name"),
        notification_type=payload.get("notification_type"),
        question_tool_name=question_tool_name,
    )


def parse_display_state(value: Any) -> DisplayState | None:
    """Parse a wire ``state`` value; unknown or legacy values yield None."""
    if not isinstance(value, str):
        return None
    try:
        return DisplayState(value)
    except ValueError:
        return None
