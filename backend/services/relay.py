import asyncio
import logging
from datetime import datetime
from typing import Optional, Set

from ..utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

PLAY_AUDIO = "PLAY_AUDIO"
AUDIO_START = "AUDIO_START"


class AudioWorker:
    """
    Relays play requests to connected listeners. It keeps no clock of its
    own and only reacts to posted messages.
    """

    def __init__(self):
        self.listeners: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.listeners.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self.listeners.discard(queue)

    async def post_message(self, message: dict) -> int:
        if message.get("type") != PLAY_AUDIO:
            logger.debug("Ignoring worker message %s", message.get("type"))
            return 0
        event = {"type": AUDIO_START, "url": message["url"]}
        for queue in list(self.listeners):
            queue.put_nowait(event)
        logger.info("Dispatched audio start to %d listener(s)", len(self.listeners))
        return len(self.listeners)


class PlaybackRelay:
    """
    Holds one worker per class and schedules a single PLAY_AUDIO post at the
    class start. Jobs live in the scheduler's memory store only, so pending
    posts do not survive a restart. A worker is dropped once nothing is
    pending for it and nobody is listening.
    """

    def __init__(self, scheduler):
        self.scheduler = scheduler
        self.workers = {}

    def worker_for(self, key: str) -> AudioWorker:
        if key not in self.workers:
            self.workers[key] = AudioWorker()
        return self.workers[key]

    def _job_id(self, key: str) -> str:
        return f"play-audio-{key}"

    def release(self, key: str, queue: asyncio.Queue) -> None:
        worker = self.workers.get(key)
        if worker is None:
            return
        worker.unsubscribe(queue)
        self._discard_if_idle(key)

    def _discard_if_idle(self, key: str) -> None:
        worker = self.workers.get(key)
        if worker is None or worker.listeners:
            return
        if self.scheduler.get_job(self._job_id(key)) is None:
            del self.workers[key]

    async def _post(self, key: str, message: dict) -> int:
        delivered = await self.worker_for(key).post_message(message)
        self._discard_if_idle(key)
        return delivered

    async def register(
        self,
        key: str,
        audio_url: str,
        scheduled_time: datetime,
        now: Optional[datetime] = None,
    ) -> float:
        """Returns the seconds until start (zero or less when posted immediately)."""
        run_date = ensure_utc(scheduled_time)
        time_until_start = (run_date - ensure_utc(now or utcnow())).total_seconds()
        message = {"type": PLAY_AUDIO, "url": audio_url}

        if time_until_start <= 0:
            self.cancel(key)
            await self._post(key, message)
        else:
            self.scheduler.add_job(
                self._post,
                "date",
                run_date=run_date,
                args=[key, message],
                id=self._job_id(key),
                replace_existing=True,
                misfire_grace_time=None,
            )
            logger.info("Audio for %s scheduled in %.0f seconds", key, time_until_start)
        return time_until_start

    def cancel(self, key: str) -> bool:
        job = self.scheduler.get_job(self._job_id(key))
        if job is None:
            return False
        job.remove()
        self._discard_if_idle(key)
        return True
