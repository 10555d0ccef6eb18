import asyncio
import logging
import shlex
import shutil
from enum import Enum

logger = logging.getLogger(__name__)


class AutoplayBlocked(Exception):
    """Raised by a player when audio could not start without a user gesture."""


class PlaybackOutcome(str, Enum):
    PLAYING = "playing"
    MANUAL_REQUIRED = "manual_required"


class AudioPlayer:
    async def unlock(self) -> None:
        """Obtain permission for later non-gesture playback."""

    async def play(self, url: str) -> None:
        raise NotImplementedError


async def try_play_audio(player: AudioPlayer, url: str) -> PlaybackOutcome:
    """
    Try a plain play, then one more attempt after re-unlocking the player.
    A second rejection means the user has to start the audio themselves.
    """
    try:
        await player.play(url)
        return PlaybackOutcome.PLAYING
    except AutoplayBlocked as e:
        logger.warning("Simple play failed: %s", e)

    try:
        await player.unlock()
        await player.play(url)
        return PlaybackOutcome.PLAYING
    except AutoplayBlocked as e:
        logger.warning("Auto-play was prevented: %s", e)
        return PlaybackOutcome.MANUAL_REQUIRED


class SubprocessPlayer(AudioPlayer):
    """
    Plays a URL through an external command line player (mpv, ffplay, ...).
    A player that is missing or exits with an error within the startup
    window counts as blocked autoplay.
    """

    def __init__(self, command: str, startup_window: float = 1.0):
        self.command = shlex.split(command)
        self.startup_window = startup_window
        self.unlocked = False
        self.process = None

    async def unlock(self) -> None:
        self.unlocked = bool(self.command) and shutil.which(self.command[0]) is not None
        if not self.unlocked:
            logger.warning("Audio player %r is not available", self.command[:1])

    async def play(self, url: str) -> None:
        if not self.command or shutil.which(self.command[0]) is None:
            raise AutoplayBlocked(f"audio player {self.command[:1]} not found")
        self.process = await asyncio.create_subprocess_exec(
            *self.command,
            url,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            code = await asyncio.wait_for(self.process.wait(), timeout=self.startup_window)
        except asyncio.TimeoutError:
            logger.info("Playing %s", url)
            return
        if code != 0:
            raise AutoplayBlocked(f"audio player exited with status {code}")

    async def stop(self) -> None:
        if self.process and self.process.returncode is None:
            self.process.terminate()
            await self.process.wait()
