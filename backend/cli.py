#!/usr/bin/env python3
"""
Countdown client for a scheduled class.

Fetches the class from the API, shows the time remaining every second and
starts the class audio when the countdown reaches zero.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

import aiohttp

from .config import API_URL, AUDIO_PLAYER_COMMAND
from .services.countdown import CountdownTimer, TimeRemaining, format_time_unit
from .services.playback import AutoplayBlocked, PlaybackOutcome, SubprocessPlayer

logger = logging.getLogger(__name__)


async def fetch_page_state(api_url: str, class_id: Optional[str]) -> dict:
    params = {"classId": class_id} if class_id else {}
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{api_url}/yoga/scheduled", params=params) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise RuntimeError(f"Failed to load scheduled class: {resp.status} {text}")
            return await resp.json()


def render(remaining: TimeRemaining) -> None:
    sys.stdout.write(
        f"\r⏳ {remaining.days}d {format_time_unit(remaining.hours)}:"
        f"{format_time_unit(remaining.minutes)}:{format_time_unit(remaining.seconds)} "
    )
    sys.stdout.flush()


async def run_countdown(api_url: str, class_id: Optional[str], player_command: str) -> int:
    try:
        state = await fetch_page_state(api_url, class_id)
    except (aiohttp.ClientError, RuntimeError) as e:
        print(f"❌ {e}")
        return 2

    if state["state"] == "no_class":
        print("No scheduled class found. Schedule one at /yoga/scheduled/setup")
        return 1

    sched = state["scheduled_class"]
    print(f"🧘 {sched['yoga_class_type']['name']} at {sched['scheduled_start_time']}")
    timer = CountdownTimer(
        datetime.fromisoformat(sched["scheduled_start_time"].replace("Z", "+00:00")),
        state["audio_url"],
        SubprocessPlayer(player_command),
        on_tick=render,
    )
    if timer.has_started:
        print("The class has started.")

    outcome = await timer.run()
    print()
    if outcome == PlaybackOutcome.MANUAL_REQUIRED:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, input, "▶ Press Enter to play the class audio ")
        try:
            await timer.play_manually()
        except AutoplayBlocked as e:
            print(f"❌ Could not play audio ({e}). Open it yourself: {timer.audio_url}")
            return 1
    print("✅ Class audio playing")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Count down to a scheduled yoga class and play its audio")
    parser.add_argument("--class-id", help="scheduled class id (defaults to the next upcoming class)")
    parser.add_argument("--api", default=API_URL, help="backend base URL")
    parser.add_argument("--player", default=AUDIO_PLAYER_COMMAND, help="audio player command line")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return asyncio.run(run_countdown(args.api.rstrip("/"), args.class_id, args.player))
    except KeyboardInterrupt:
        print("\nCountdown cancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
