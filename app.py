"""
Slackbot: Weight Loss Challenge

Features
- DM `baseline 200lbs` once per challenge, then `checkin 195lbs` as often as you like
- /leaderboard posts the top 5 to the fitness channel (total pounds or % of body weight lost)
- /challenge-status shows the deadline and days remaining
- Admin-only: /start-challenge (modal: mode + end date), /set-deadline YYYY-MM-DD, /reset-challenge
- The day after the deadline the full final standings are posted automatically
- Google Sheets persistence (Users + Config tabs)

Quick Start
1) Create a Slack app → Enable Socket Mode OR Events API, add bot token scopes:
   chat:write, commands, im:history, im:read, users:read
2) Subscribe to the `message.im` bot event and create the slash commands
   /leaderboard, /challenge-status, /start-challenge, /set-deadline, /reset-challenge
   (Request URL: https://YOUR_HOST/slack/events, or socket mode)
3) Share the spreadsheet with the service account's e-mail address
4) Export env vars and run:  python app.py

Env Vars
- SLACK_BOT_TOKEN (xoxb-...)
- SLACK_SIGNING_SECRET           # HTTP mode
- APP_LEVEL_TOKEN (xapp-...)     # if using Socket Mode
- USE_SOCKET_MODE=true|false (default true)
- GOOGLE_SHEETS_CREDENTIALS      # service account JSON
- GOOGLE_SHEET_ID
- FITNESS_CHANNEL                # channel id for broadcasts
- ADMIN_IDS                      # comma-separated Slack user ids
- FINAL_LEADERBOARD_TIMEZONE (optional, e.g. America/New_York; server local time otherwise)
- FINAL_LEADERBOARD_TIME (optional, HH:MM, default 09:00)
- PORT (optional, default 3000), LOG_LEVEL (optional, default INFO)

"""
from __future__ import annotations
import logging
from typing import Optional

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler
from slack_sdk.errors import SlackApiError
from slack_sdk.web.client import WebClient

from weightbot import handlers
from weightbot.commands import CommandKind, parse_direct_message
from weightbot.scheduler import build_scheduler, run_final_leaderboard_check
from weightbot.settings import Settings, SettingsError, load_settings
from weightbot.storage import SheetStore
from weightbot.validation import today

log = logging.getLogger("weightbot.app")

# -------------------------
# Utilities
# -------------------------


def _is_direct_message(client: WebClient, event: dict) -> bool:
    if event.get("channel_type") == "im":
        return True
    channel = event.get("channel") or ""
    if channel.startswith("D"):
        return True
    if not channel:
        return False
    try:
        info = client.conversations_info(channel=channel)
    except SlackApiError as e:
        log.warning("Could not verify channel type for %s: %s", channel, e)
        return False
    return bool(info.get("channel", {}).get("is_im"))


def _display_name(client: WebClient, user_id: str) -> str:
    try:
        resp = client.users_info(user=user_id)
        return resp["user"]["name"]
    except SlackApiError as e:
        log.warning("users.info failed for %s, using the id: %s", user_id, e)
        return user_id


def _post(client: WebClient, channel: str, text: str) -> None:
    client.chat_postMessage(channel=channel, text=text)


# -------------------------
# Slack app
# -------------------------


def create_app(settings: Settings, store: SheetStore, **app_kwargs) -> App:
    app = App(token=settings.slack_bot_token, signing_secret=settings.slack_signing_secret, **app_kwargs)

    def _today():
        return today(settings.timezone)

    # ---- DMs: baseline / checkin ----

    @app.event("message")
    def handle_messages(event, client, logger):
        # Ignore bot messages, edits, joins...
        if event.get("subtype") is not None or event.get("bot_id"):
            return
        if not _is_direct_message(client, event):
            return

        user = event.get("user")
        cmd = parse_direct_message(event.get("text"))
        if cmd is None:
            logger.debug("Unrecognized DM from %s", user)
            return

        logger.info("Processing %s from %s (weight=%s)", cmd.kind.value, user, cmd.weight)
        if cmd.kind is CommandKind.BASELINE:
            reply = handlers.handle_baseline(store, user, _display_name(client, user), cmd.text, _today())
        else:
            reply = handlers.handle_checkin(store, user, cmd.text, _today())
        _post(client, user, reply)

    # ---- slash commands ----

    @app.command("/leaderboard")
    def leaderboard(ack, respond, client):
        ack()
        reply = handlers.handle_leaderboard(store, settings.fitness_channel, _today())
        if reply.broadcast:
            _post(client, settings.fitness_channel, reply.broadcast)
        respond(response_type="ephemeral", text=reply.text)

    @app.command("/challenge-status")
    def challenge_status(ack, respond):
        ack()
        respond(response_type="ephemeral", text=handlers.handle_challenge_status(store, _today()))

    @app.command("/reset-challenge")
    def reset_challenge(ack, respond, command, client):
        ack()
        reply = handlers.handle_reset_challenge(
            store, command["user_id"], settings.admin_ids, settings.fitness_channel
        )
        if reply.broadcast:
            _post(client, settings.fitness_channel, reply.broadcast)
        respond(response_type="ephemeral", text=reply.text)

    @app.command("/set-deadline")
    def set_deadline(ack, respond, command):
        ack()
        text = handlers.handle_set_deadline(
            store, command["user_id"], settings.admin_ids, command.get("text", "")
        )
        respond(response_type="ephemeral", text=text)

    @app.command("/start-challenge")
    def start_challenge(ack, command, client, logger):
        ack()
        view = handlers.open_start_challenge(command["user_id"], settings.admin_ids)
        try:
            client.views_open(trigger_id=command["trigger_id"], view=view)
        except SlackApiError as e:
            logger.error("Could not open start-challenge modal: %s", e.response.get("response_metadata"))

    @app.view(handlers.START_CHALLENGE_CALLBACK)
    def start_challenge_submit(ack, body, client):
        form = handlers.read_start_challenge_form(body["view"]["state"]["values"])
        result = handlers.handle_start_challenge_submit(
            store, body["user"]["id"], settings.admin_ids,
            form["mode"], form["end_date"], _today(), settings.fitness_channel,
        )
        ack(**result.ack_payload())
        if result.broadcast:
            _post(client, settings.fitness_channel, result.broadcast)

    return app


def create_health_api():
    from fastapi import FastAPI
    from fastapi.responses import PlainTextResponse

    api = FastAPI()

    @api.get("/health", response_class=PlainTextResponse)
    def health():
        return "OK"

    return api


# -------------------------
# Socket Mode worker or HTTP server (health check on both)
# -------------------------


def main(settings: Optional[Settings] = None) -> None:
    import uvicorn

    try:
        settings = settings or load_settings()
    except SettingsError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    missing = settings.missing()
    if missing:
        raise SystemExit(f"Missing required configuration: {', '.join(missing)}")

    try:
        credentials = settings.credentials_info()
    except SettingsError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    store = SheetStore.from_service_account_info(credentials, settings.google_sheet_id)
    store.ensure_worksheets()
    app = create_app(settings, store)

    scheduler = build_scheduler(
        settings.final_leaderboard_at,
        lambda: run_final_leaderboard_check(
            store, lambda channel, text: _post(app.client, channel, text),
            settings.fitness_channel, today(settings.timezone),
        ),
        tz=settings.timezone,
    )
    scheduler.start()
    log.info("Final leaderboard scheduler started (daily at %s, %s)",
             settings.final_leaderboard_at.strftime("%H:%M"), settings.timezone or "server local time")

    api = create_health_api()
    if settings.use_socket_mode:
        log.info("→ Connecting to Slack in Socket Mode…")
        SocketModeHandler(app, settings.app_level_token).connect()
    else:
        from fastapi import Request
        from slack_bolt.adapter.fastapi import SlackRequestHandler

        handler = SlackRequestHandler(app)

        @api.post("/slack/events")
        async def slack_events(req: Request):
            return await handler.handle(req)

    log.info("→ Starting HTTP server on :%s …", settings.port)
    try:
        uvicorn.run(api, host="0.0.0.0", port=settings.port)
    finally:
        scheduler.shutdown(wait=False)


if __name__ == "__main__":
    main()
