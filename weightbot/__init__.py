"""Weight-loss challenge Slack bot: baselines, checkins and a ranked leaderboard."""

__version__ = "0.1.0"
