"""
Command handlers.

Each handler validates its input, checks preconditions against freshly read
sheet data, performs one write through the store and returns the text to show
the caller (plus, for some commands, a message to broadcast to the fitness
channel). Slack plumbing lives in app.py.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, Optional

from . import messages
from .leaderboard import compute_leaderboard
from .models import Mode
from .storage import BaselineAlreadySet, BaselineMissing, SheetStore
from .validation import (
    days_until, format_weight, match_weight, parse_date, parse_weight, validate_date_format,
)

logger = logging.getLogger(__name__)

START_CHALLENGE_CALLBACK = "start_challenge_modal"
MODE_BLOCK, MODE_ACTION = "competition_mode_block", "competition_mode"
END_DATE_BLOCK, END_DATE_ACTION = "end_date_block", "end_date"


@dataclass
class Reply:
    text: str                          # shown to the caller only
    broadcast: Optional[str] = None    # posted to the fitness channel


def is_admin(identity: Optional[str], admin_ids: Iterable[str]) -> bool:
    if not identity:
        return False
    return identity in set(admin_ids)


def _weight_problem(text: str, command: str, example: str) -> str:
    # parse_weight() said no; find out whether it was the format or the range
    raw = match_weight(text)
    if raw is not None and (raw < 100 or raw > 1000):
        return messages.weight_range_error(raw)
    return messages.weight_format_error(command, example)


# -------------------------
# DM commands
# -------------------------

def handle_baseline(store: SheetStore, identity: str, display_name: str, text: str, today: date) -> str:
    try:
        weight = parse_weight(text)
        if weight is None:
            return _weight_problem(text, "baseline", "200lbs")

        existing = store.get_user(identity)
        if existing is not None and existing.has_baseline:
            raise BaselineAlreadySet(existing)

        store.set_baseline(identity, display_name, weight, today)
        logger.info("Baseline set for %s: %s lbs", identity, weight)
        return (
            f"✅ Baseline weight set: {format_weight(weight)}lbs\nDate: {today.isoformat()}\n\n"
            "You can now log checkins using: `checkin 185lbs`"
        )
    except BaselineAlreadySet as e:
        when = e.user.baseline_date.isoformat() if e.user.baseline_date else "an earlier date"
        return (
            f"❌ You already have a baseline weight set: {format_weight(e.user.baseline_weight)}lbs "
            f"(set on {when}).\nTo update your baseline, contact an admin to reset the challenge."
        )
    except Exception:
        logger.exception("Error handling baseline command for %s", identity)
        return messages.GENERIC_ERROR.format(action="setting your baseline")


def handle_checkin(store: SheetStore, identity: str, text: str, today: date) -> str:
    no_baseline = "❌ No baseline weight found. Please set your baseline first using: `baseline 200lbs`"
    try:
        config = store.get_config()
        deadline = config.deadline
        if deadline is not None and today > deadline:
            return (
                f"❌ The challenge deadline has passed ({deadline.isoformat()}). "
                "Checkins are no longer accepted."
            )

        weight = parse_weight(text)
        if weight is None:
            return _weight_problem(text, "checkin", "185lbs")

        user = store.get_user(identity)
        if user is None or not user.has_baseline:
            return no_baseline

        user = store.add_checkin(identity, weight, today)
        logger.info("Checkin for %s: %s lbs", identity, weight)
    except BaselineMissing:
        return no_baseline
    except Exception:
        logger.exception("Error handling checkin command for %s", identity)
        return messages.GENERIC_ERROR.format(action="recording your checkin")

    # total lost is measured against the weight just submitted
    lost = user.baseline_weight - weight
    lines = [
        "✅ Checkin recorded!",
        "",
        f"Current weight: {format_weight(weight)}lbs",
        f"Total lost: {'-' if lost >= 0 else '+'}{abs(lost):.1f}lbs",
        f"Baseline: {format_weight(user.baseline_weight)}lbs",
        f"Total checkins: {len(user.checkins)}",
    ]
    if deadline is not None and days_until(deadline, today) >= 0:
        lines.append(f"Days until deadline: {days_until(deadline, today)}")
    return "\n".join(lines)


# -------------------------
# Slash commands
# -------------------------

def handle_leaderboard(store: SheetStore, channel: Optional[str], today: date) -> Reply:
    if not channel:
        return Reply(messages.NO_CHANNEL)
    try:
        config = store.get_config()
        users = store.all_users()
        if not users:
            post = messages.no_participants_message()
        else:
            entries = compute_leaderboard(users, config.mode)
            post = messages.leaderboard_message(entries, config.mode, config.deadline, today)
    except Exception:
        logger.exception("Error building leaderboard")
        return Reply(messages.GENERIC_ERROR.format(action="generating the leaderboard"))
    return Reply(f"✅ Leaderboard posted to <#{channel}>", broadcast=post)


def handle_challenge_status(store: SheetStore, today: date) -> str:
    try:
        deadline = store.get_config().deadline
    except Exception:
        logger.exception("Error reading challenge status")
        return messages.GENERIC_ERROR.format(action="retrieving challenge status")
    if deadline is None:
        return "📅 *Challenge Status*\n\nNo deadline has been set for this challenge."
    status = messages.format_challenge_status(deadline, days_until(deadline, today))
    return f"📅 *Challenge Status*\n\n{status}"


def handle_reset_challenge(store: SheetStore, identity: str, admin_ids: Iterable[str],
                           channel: Optional[str]) -> Reply:
    if not is_admin(identity, admin_ids):
        return Reply(messages.UNAUTHORIZED)
    if not channel:
        return Reply(messages.NO_CHANNEL)
    try:
        store.reset_users()
        store.set_final_leaderboard_sent(False)
    except Exception:
        logger.exception("Error resetting challenge")
        return Reply(messages.GENERIC_ERROR.format(action="resetting the challenge"))
    logger.info("Challenge reset by %s", identity)
    return Reply(
        f"✅ Challenge reset successfully. Announcement posted to <#{channel}>",
        broadcast=messages.RESET_ANNOUNCEMENT,
    )


def handle_set_deadline(store: SheetStore, identity: str, admin_ids: Iterable[str], text: str) -> str:
    if not is_admin(identity, admin_ids):
        return messages.UNAUTHORIZED

    raw = (text or "").strip()
    if not raw:
        return "❌ Please provide a date. Use YYYY-MM-DD format.\nExample: `/set-deadline 2024-12-31`"
    if not validate_date_format(raw):
        return (
            f'❌ Invalid date format: "{raw}"\nPlease use YYYY-MM-DD format (e.g., 2024-12-31).\n'
            "Example: `/set-deadline 2024-12-31`"
        )
    try:
        store.set_deadline(parse_date(raw))
    except Exception:
        logger.exception("Error setting deadline")
        return messages.GENERIC_ERROR.format(action="setting the deadline")
    return f"✅ Challenge deadline set to {raw}"


# -------------------------
# /start-challenge (modal)
# -------------------------

def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text}


def _mode_option(mode: Mode, description: str) -> Dict[str, Any]:
    return {"text": _plain(mode.label), "value": mode.value, "description": _plain(description)}


def _message_view(title: str, text: str) -> Dict[str, Any]:
    return {
        "type": "modal",
        "title": _plain(title),
        "close": _plain("Close"),
        "blocks": [{"type": "section", "text": {"type": "mrkdwn", "text": text}}],
    }


def build_start_challenge_modal() -> Dict[str, Any]:
    total = _mode_option(Mode.TOTAL, "Winner loses most pounds")
    return {
        "type": "modal",
        "callback_id": START_CHALLENGE_CALLBACK,
        "title": _plain("Start Competition"),
        "submit": _plain("Start Competition"),
        "close": _plain("Cancel"),
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": "Configure the competition settings below:"}},
            {"type": "divider"},
            {
                "type": "input",
                "block_id": MODE_BLOCK,
                "label": _plain("Competition Mode"),
                "element": {
                    "type": "static_select",
                    "action_id": MODE_ACTION,
                    "placeholder": _plain("Select competition mode"),
                    "initial_option": total,
                    "options": [
                        total,
                        _mode_option(Mode.PERCENTAGE, "Winner loses highest % of body weight"),
                    ],
                },
                "hint": _plain(
                    "Total: Winner loses most pounds. Percentage: Winner loses highest % of body weight."
                ),
            },
            {
                "type": "input",
                "block_id": END_DATE_BLOCK,
                "label": _plain("End Date"),
                "element": {
                    "type": "datepicker",
                    "action_id": END_DATE_ACTION,
                    "placeholder": _plain("Select end date"),
                },
                "hint": _plain("The competition will end on this date"),
            },
        ],
    }


def open_start_challenge(identity: str, admin_ids: Iterable[str]) -> Dict[str, Any]:
    """View to open for /start-challenge: the form, or an access-denied notice."""
    if not is_admin(identity, admin_ids):
        return _message_view("Access Denied", "❌ *Unauthorized*\n\nThis command is admin-only.")
    return build_start_challenge_modal()


def read_start_challenge_form(state_values: Dict[str, Any]) -> Dict[str, Optional[str]]:
    selected = (state_values.get(MODE_BLOCK, {}).get(MODE_ACTION, {}) or {}).get("selected_option") or {}
    end_date = (state_values.get(END_DATE_BLOCK, {}).get(END_DATE_ACTION, {}) or {}).get("selected_date")
    return {"mode": selected.get("value"), "end_date": end_date}


@dataclass
class StartChallengeResult:
    errors: Optional[Dict[str, str]] = None      # block_id -> inline error
    view: Optional[Dict[str, Any]] = None        # replaces the modal on success
    broadcast: Optional[str] = None

    def ack_payload(self) -> Dict[str, Any]:
        if self.errors:
            return {"response_action": "errors", "errors": self.errors}
        return {"response_action": "update", "view": self.view}


def _field_error(block: str, text: str) -> StartChallengeResult:
    return StartChallengeResult(errors={block: text})


def handle_start_challenge_submit(store: SheetStore, identity: str, admin_ids: Iterable[str],
                                  mode_value: Optional[str], end_date_value: Optional[str],
                                  today: date, channel: Optional[str]) -> StartChallengeResult:
    if not is_admin(identity, admin_ids):
        return _field_error(MODE_BLOCK, "Unauthorized. This command is admin-only.")

    if not mode_value:
        return _field_error(MODE_BLOCK, "Please select a competition mode.")
    mode = Mode.parse(mode_value)
    if mode is None:
        return _field_error(MODE_BLOCK, "Invalid competition mode selected.")

    if not end_date_value:
        return _field_error(END_DATE_BLOCK, "Please select an end date.")
    if not validate_date_format(end_date_value):
        return _field_error(END_DATE_BLOCK, "Invalid date format. Please use YYYY-MM-DD format.")
    end = parse_date(end_date_value)
    if end <= today:
        return _field_error(END_DATE_BLOCK, "End date must be in the future.")

    try:
        if store.has_active_competition():
            return _field_error(
                MODE_BLOCK,
                "A competition is already active with participants. "
                "Please use /reset-challenge first to clear existing data.",
            )
        store.start_competition(mode, today, end)
    except Exception:
        logger.exception("Error starting competition")
        return _field_error(MODE_BLOCK, "An error occurred while starting the competition. Please try again.")

    logger.info("Competition started by %s: mode=%s end=%s", identity, mode.value, end)
    posted = f"Announcement posted to <#{channel}>" if channel \
        else "Note: FITNESS_CHANNEL not configured, announcement not posted"
    summary = (
        "✅ *Competition started successfully!*\n\n"
        f"• Mode: {mode.label}\n• Start Date: {today.isoformat()}\n• End Date: {end.isoformat()}\n\n{posted}"
    )
    return StartChallengeResult(
        view=_message_view("Competition Started!", summary),
        broadcast=messages.format_start_announcement(mode, today, end) if channel else None,
    )
