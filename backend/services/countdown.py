import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..utils.time_utils import ensure_utc, utcnow
from .playback import AudioPlayer, AutoplayBlocked, PlaybackOutcome, try_play_audio

logger = logging.getLogger(__name__)

WAITING = "waiting"
STARTED = "started"

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class TimeRemaining:
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    @property
    def total_seconds(self) -> int:
        return self.days * SECONDS_PER_DAY + self.hours * 3600 + self.minutes * 60 + self.seconds

    def as_dict(self) -> dict:
        return {
            "days": self.days,
            "hours": self.hours,
            "minutes": self.minutes,
            "seconds": self.seconds,
            "total_seconds": self.total_seconds,
        }


def has_arrived(target: datetime, now: datetime) -> bool:
    # compared on the exact instants; TimeRemaining is truncated to whole seconds
    return ensure_utc(target) <= ensure_utc(now)


def compute_time_remaining(target: datetime, now: datetime) -> TimeRemaining:
    difference = ensure_utc(target) - ensure_utc(now)
    if difference <= timedelta(0):
        return TimeRemaining()
    total = difference // timedelta(seconds=1)
    days, rest = divmod(total, SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return TimeRemaining(days, hours, minutes, seconds)


def format_time_until(target: datetime, now: datetime) -> str:
    if has_arrived(target, now):
        return "Starting now"
    remaining = compute_time_remaining(target, now)
    if remaining.days > 0:
        suffix = "s" if remaining.days != 1 else ""
        return f"{remaining.days} day{suffix} {remaining.hours} hr"
    if remaining.hours > 0:
        return f"{remaining.hours} hr {remaining.minutes} min"
    return f"{remaining.minutes} min"


def format_time_unit(value: int) -> str:
    return f"{value:02d}"


class CountdownTimer:
    """
    Tracks a class start instant and fires a single playback attempt once
    it is due. The state is ``started`` straight away when the start time
    has already passed.
    """

    def __init__(
        self,
        target: datetime,
        audio_url: str,
        player: AudioPlayer,
        clock: Callable[[], datetime] = utcnow,
        sleep=asyncio.sleep,
        on_tick: Optional[Callable[[TimeRemaining], None]] = None,
        interval: float = 1.0,
    ):
        self.target = ensure_utc(target)
        self.audio_url = audio_url
        self.player = player
        self.clock = clock
        self.sleep = sleep
        self.on_tick = on_tick
        self.interval = interval

        now = self.clock()
        self.remaining = compute_time_remaining(self.target, now)
        self.state = STARTED if has_arrived(self.target, now) else WAITING
        self.playback_attempted = False
        self.outcome: Optional[PlaybackOutcome] = None

    @property
    def has_started(self) -> bool:
        return self.state == STARTED

    @property
    def manual_play_required(self) -> bool:
        return self.outcome == PlaybackOutcome.MANUAL_REQUIRED

    async def unlock(self) -> None:
        try:
            await self.player.unlock()
        except AutoplayBlocked as e:
            logger.info("Audio permission not granted yet: %s", e)

    async def tick(self) -> bool:
        """Recompute the countdown; returns True on the tick that triggers playback."""
        now = self.clock()
        self.remaining = compute_time_remaining(self.target, now)
        if self.on_tick:
            self.on_tick(self.remaining)
        if not has_arrived(self.target, now) or self.playback_attempted:
            return False

        self.state = STARTED
        self.playback_attempted = True
        logger.info("Class start reached, playing %s", self.audio_url)
        self.outcome = await try_play_audio(self.player, self.audio_url)
        return True

    async def run(self) -> Optional[PlaybackOutcome]:
        await self.unlock()
        while True:
            await self.tick()
            if self.playback_attempted:
                return self.outcome
            await self.sleep(self.interval)

    async def play_manually(self) -> PlaybackOutcome:
        await self.player.play(self.audio_url)
        self.outcome = PlaybackOutcome.PLAYING
        return self.outcome
