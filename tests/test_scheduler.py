"""
Tests for the final-leaderboard job.
"""
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from weightbot.models import CompetitionConfig
from weightbot.scheduler import (
    FINAL_LEADERBOARD_JOB, build_scheduler, run_final_leaderboard_check, send_final_leaderboard,
    should_send_final_leaderboard,
)

TODAY = date(2024, 3, 2)
YESTERDAY = date(2024, 3, 1)
NEW_YORK = ZoneInfo("America/New_York")


class Recorder:
    def __init__(self):
        self.posts = []

    def __call__(self, channel, text):
        self.posts.append((channel, text))


class TestShouldSend:
    def test_deadline_yesterday_and_unsent(self):
        assert should_send_final_leaderboard(CompetitionConfig(deadline=YESTERDAY), TODAY) is True

    def test_no_deadline(self):
        assert should_send_final_leaderboard(CompetitionConfig(), TODAY) is False

    def test_deadline_today_or_earlier(self):
        assert should_send_final_leaderboard(CompetitionConfig(deadline=TODAY), TODAY) is False
        assert should_send_final_leaderboard(CompetitionConfig(deadline=date(2024, 2, 28)), TODAY) is False

    def test_already_sent(self):
        config = CompetitionConfig(deadline=YESTERDAY, final_leaderboard_sent=True)
        assert should_send_final_leaderboard(config, TODAY) is False


class TestSendFinalLeaderboard:
    def test_posts_full_board_and_sets_flag(self, store):
        store.set_deadline(YESTERDAY)
        for i in range(7):
            store.set_baseline(f"U{i}", f"user{i}", 200.0, date(2024, 1, 1))
            store.add_checkin(f"U{i}", 200.0 - i, date(2024, 2, 1))
        post = Recorder()

        assert send_final_leaderboard(store, post, "CFIT", TODAY) is True
        [(channel, text)] = post.posts
        assert channel == "CFIT"
        assert "Challenge Complete! Final Results" in text
        assert "Challenge ended on 2024-03-01" in text
        assert "🥇 @user6: -6.0lbs (200→194)" in text
        assert "7. @user0: +0.0lbs (200→200)" in text
        assert store.get_config().final_leaderboard_sent is True

    def test_no_participants_still_sets_flag(self, store):
        store.set_deadline(YESTERDAY)
        post = Recorder()
        send_final_leaderboard(store, post, "CFIT", TODAY)
        assert "No participants in this challenge." in post.posts[0][1]
        assert store.get_config().final_leaderboard_sent is True

    def test_no_channel_sends_nothing(self, store):
        post = Recorder()
        assert send_final_leaderboard(store, post, None, TODAY) is False
        assert post.posts == []
        assert store.get_config().final_leaderboard_sent is False


class TestRunCheck:
    def test_fires_once(self, store):
        store.set_deadline(YESTERDAY)
        store.set_baseline("U1", "alice", 200.0, date(2024, 1, 1))
        post = Recorder()

        assert run_final_leaderboard_check(store, post, "CFIT", TODAY) is True
        # next day: date no longer matches; same day again: flag blocks it
        assert run_final_leaderboard_check(store, post, "CFIT", TODAY) is False
        assert run_final_leaderboard_check(store, post, "CFIT", date(2024, 3, 3)) is False
        assert len(post.posts) == 1

    def test_errors_are_logged_not_raised(self, store, spreadsheet):
        spreadsheet.broken = True
        assert run_final_leaderboard_check(store, Recorder(), "CFIT", TODAY) is False


class TestBuildScheduler:
    def _trigger(self, at=time(9, 0), tz="America/New_York"):
        scheduler = build_scheduler(at, lambda: None, tz=tz)
        return scheduler.get_job(FINAL_LEADERBOARD_JOB).trigger

    def test_next_fire_later_today(self):
        trigger = self._trigger()
        fire = trigger.get_next_fire_time(None, datetime(2024, 3, 2, 8, 30, tzinfo=NEW_YORK))
        assert (fire.date(), fire.hour, fire.minute) == (date(2024, 3, 2), 9, 0)

    def test_next_fire_tomorrow_once_passed(self):
        trigger = self._trigger(at=time(9, 15))
        fire = trigger.get_next_fire_time(None, datetime(2024, 3, 2, 17, 45, tzinfo=NEW_YORK))
        assert (fire.date(), fire.hour, fire.minute) == (date(2024, 3, 3), 9, 15)

    def test_keeps_wall_clock_across_spring_forward(self):
        # 2024-03-10 is the first EDT day in New York
        trigger = self._trigger()
        fire = trigger.get_next_fire_time(None, datetime(2024, 3, 9, 12, 0, tzinfo=NEW_YORK))
        assert (fire.date(), fire.hour, fire.minute) == (date(2024, 3, 10), 9, 0)
        assert fire.astimezone(timezone.utc).hour == 13

    def test_keeps_wall_clock_across_fall_back(self):
        trigger = self._trigger()
        fire = trigger.get_next_fire_time(None, datetime(2024, 11, 2, 12, 0, tzinfo=NEW_YORK))
        assert (fire.date(), fire.hour) == (date(2024, 11, 3), 9)
        assert fire.astimezone(timezone.utc).hour == 14

    def test_job_runs_the_callback(self):
        calls = []
        scheduler = build_scheduler(time(9, 0), lambda: calls.append(1), tz="UTC")
        job = scheduler.get_job(FINAL_LEADERBOARD_JOB)
        job.func()
        assert calls == [1]
        assert job.coalesce is True

    def test_start_and_shutdown(self):
        scheduler = build_scheduler(time(9, 0), lambda: None, tz="UTC")
        scheduler.start()
        try:
            assert scheduler.running
            assert scheduler.get_job(FINAL_LEADERBOARD_JOB) is not None
        finally:
            scheduler.shutdown(wait=False)
        assert not scheduler.running
