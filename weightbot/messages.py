"""User-facing message text."""
from __future__ import annotations
from datetime import date
from typing import List, Optional

from .leaderboard import TOP_N, render_board
from .models import LeaderboardEntry, Mode
from .validation import days_between, days_until

GENERIC_ERROR = "❌ An error occurred while {action}. Please try again."
UNAUTHORIZED = "❌ Unauthorized. This command is admin-only."
NO_CHANNEL = "❌ FITNESS_CHANNEL environment variable not configured."

LEADERBOARD_TITLE = "📊 *Weight Loss Challenge Leaderboard*"
LEADERBOARD_FOOTER = (
    "_Use `baseline [weight]lbs` to set your starting weight, "
    "and `checkin [weight]lbs` to log your progress!_"
)
FINAL_TITLE = "🎉 *Challenge Complete! Final Results*"
FINAL_FOOTER = "🎊 _Congratulations to everyone who participated! Great job on your progress!_"
RESET_ANNOUNCEMENT = (
    "🔄 *Challenge Reset*\n\nThe challenge has been reset. All participant data has been cleared. "
    "Participants can now set new baseline weights to start fresh!"
)


def weight_format_error(command: str, example: str) -> str:
    return f"❌ Invalid format. Please use: `{command} {example}`\nExample: `{command} {example}`"


def weight_range_error(weight: float) -> str:
    if weight < 100:
        return "❌ Weight must be at least 100lbs. Please enter a valid weight."
    return "❌ Weight must be 1000lbs or less. Please enter a valid weight."


def format_challenge_status(deadline: Optional[date], days_left: int) -> str:
    if deadline is None:
        return "No deadline set for this challenge."
    if days_left < 0:
        return f"Challenge ended on {deadline.isoformat()}. ({abs(days_left)} days ago)"
    if days_left == 0:
        return f"Challenge ends today ({deadline.isoformat()})!"
    return f"Challenge deadline: {deadline.isoformat()}\nDays remaining: {days_left}"


def leaderboard_message(entries: List[LeaderboardEntry], mode: Mode,
                        deadline: Optional[date], today: date) -> str:
    parts = [LEADERBOARD_TITLE, ""]
    if deadline is not None:
        parts += [format_challenge_status(deadline, days_until(deadline, today)), ""]
    if entries:
        parts.append(render_board(entries, mode, limit=TOP_N))
    else:
        parts.append("No results yet.")
    parts += ["", LEADERBOARD_FOOTER]
    return "\n".join(parts)


def no_participants_message() -> str:
    return f"{LEADERBOARD_TITLE}\n\nNo participants yet. Set your baseline weight to get started!"


def final_leaderboard_message(entries: List[LeaderboardEntry], mode: Mode,
                              deadline: Optional[date]) -> str:
    parts = [FINAL_TITLE, ""]
    if deadline is not None:
        parts += [f"Challenge ended on {deadline.isoformat()}", ""]
    # everyone, not just the top 5
    parts.append(render_board(entries, mode) if entries else "No results to display.")
    parts += ["", FINAL_FOOTER]
    return "\n".join(parts)


def final_no_participants_message() -> str:
    return "🎉 *Challenge Complete!*\n\nNo participants in this challenge."


def format_start_announcement(mode: Mode, start: date, end: date) -> str:
    if mode is Mode.PERCENTAGE:
        how = (
            "This competition is based on percentage of body weight lost. This makes it fair for "
            "everyone regardless of starting weight! The person who loses the highest percentage "
            "of their starting weight wins."
        )
    else:
        how = "This competition is based on total weight lost. The person who loses the most pounds wins!"

    lines = [
        "🎉 *Weight Loss Challenge Started!*",
        "",
        "📅 *Competition Details:*",
        f"• Start Date: {start.isoformat()}",
        f"• End Date: {end.isoformat()}",
        f"• Mode: {mode.label}",
        f"• Duration: {days_between(start, end)} days",
        "",
        "🏆 *How It Works:*",
        how,
        "",
        "📝 *Getting Started:*",
        "1. Set your baseline weight by typing:",
        "   `baseline 200lbs`",
        "   (Replace 200 with your starting weight)",
        "",
        "2. Log your progress by typing:",
        "   `checkin 195lbs`",
        "   (Replace 195 with your current weight)",
        "",
        "3. View the leaderboard anytime:",
        "   `/leaderboard`",
        "",
        "💡 *Tips:*",
        "• You can set your baseline and log checkins in DMs with the bot",
        "• Check in regularly to track your progress",
        f"• The leaderboard shows the top {TOP_N} participants",
    ]
    if mode is Mode.PERCENTAGE:
        lines.append("• Example: If you start at 200lbs and lose 10lbs, that's 5% weight loss")
    lines += ["", "Good luck everyone! Let's crush our goals! 💪"]
    return "\n".join(lines)
