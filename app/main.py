import asyncio
import locale
import logging

from dotenv import load_dotenv

import settings
from lastfm_client import LastFMClient
from registry import ValidationError
from state import IdentityTrackState
from tracker import Tracker
from username_store import JsonFileStorage

log = logging.getLogger("lastfm-tracker")

HELP = """Commands:
  add <username>      start tracking a Last.fm user
  remove <username>   stop tracking a user
  refresh             refresh every user now
  list                show tracked usernames
  show                print the current tracks
  quit                exit"""

# -------------------------
# Text rendering
# -------------------------
def _card(entry: IdentityTrackState) -> str:
    track = entry.current_track
    line = f"  {entry.identity}: {track.artist} - {track.title}"
    if track.album:
        line += f" [{track.album}]"
    if track.display_timestamp:
        line += f" ({track.display_timestamp})"
    return line

def render(tracker: Tracker) -> str:
    if not tracker.usernames:
        return "No users tracked. Add one with: add <username>"

    view = tracker.view()
    lines: list[str] = []
    if view.now_playing:
        lines.append("Now Playing")
        lines.extend(_card(e) for e in view.now_playing)
    if view.last_played:
        lines.append("Last Played")
        lines.extend(_card(e) for e in view.last_played)
    for e in tracker.errors():
        lines.append(f"  {e.identity}: error: {e.error}")
    if not lines:
        lines.append("Loading..." if tracker.loading else "No recent tracks")
    return "\n".join(lines)


async def _read_line(prompt: str = "") -> str | None:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None

async def run_console(tracker: Tracker) -> None:
    print(HELP)
    while True:
        line = await _read_line("> ")
        if line is None:
            return
        command, _, arg = line.strip().partition(" ")
        command, arg = command.lower(), arg.strip()

        if not command:
            continue
        if command in ("quit", "exit"):
            return
        if command == "add":
            try:
                username = await tracker.add(arg)
            except ValidationError as e:
                print(f"Error: {e}")
                continue
            print(f"Tracking {username}")
        elif command == "remove":
            if arg not in tracker.usernames:
                print(f"{arg or '(empty)'} is not tracked")
                continue
            answer = await _read_line(f"Stop tracking {arg}? [y/N] ")
            if (answer or "").strip().lower() in ("y", "yes"):
                await tracker.remove(arg)
                print(f"Removed {arg}")
        elif command == "refresh":
            await tracker.refresh_now()
        elif command == "list":
            print(", ".join(tracker.usernames) or "(none)")
        elif command == "show":
            print(render(tracker))
        else:
            print(HELP)


async def run(cfg: settings.Settings) -> None:
    client = LastFMClient(cfg.api_key, base_url=cfg.base_url, timeout=cfg.http_timeout)
    storage = JsonFileStorage(cfg.storage_path)

    def redraw():
        print("\n" + render(tracker))

    tracker = Tracker(client, storage, interval=cfg.poll_interval, on_update=redraw)
    await tracker.start()
    log.info("Starting Last.fm tracker. Poll interval: %ss | Storage: %s",
             cfg.poll_interval, storage.path)
    try:
        await run_console(tracker)
    finally:
        await tracker.stop()


def main():
    load_dotenv()
    cfg = settings.from_env()

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,  # ensure our config is used even if libs pre-configure logging
    )

    # calendar dates in track timestamps follow the user's locale
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as e:
        log.warning("Unsupported locale, using C date format: %s", e)

    # Validate configuration up-front for clear errors
    if not cfg.api_key:
        raise SystemExit("LASTFM_API_KEY is required")

    try:
        asyncio.run(run(cfg))
    except KeyboardInterrupt:
        log.info("Shutting down…")


if __name__ == "__main__":
    main()
