"""
Seed the three audio-guided class types.
- Default: adds missing class types only.
- --force: also reactivates and refreshes existing ones.
"""

import logging
import sys

from .database import SessionLocal, init_db
from .models import ClassType

logger = logging.getLogger(__name__)

AUDIO_BASE = "https://jsltdgvipylqrgesphet.supabase.co/storage/v1/object/public/audio/"

CLASS_TYPES = [
    {
        "id": "bikram-90-english",
        "name": "90-Minute Bikram Yoga (English)",
        "description": "Follow along with this 90-minute Bikram yoga class with English instructions.",
        "duration_minutes": 90,
        "audio_url": AUDIO_BASE + "/90-minute-hot-yoga-bikram-yoga-english-with-gary-olson%20(1).mp3",
        "yoga_type": "bikram",
    },
    {
        "id": "bikram-90",
        "name": "90-Minute Bikram Yoga",
        "description": "Follow along with the complete 90-minute Bikram sequence with detailed instructions.",
        "duration_minutes": 90,
        "audio_url": AUDIO_BASE + "/yoga_series_26_full_2024_06_18.mp3",
        "yoga_type": "bikram",
    },
    {
        "id": "bikram-30",
        "name": "30-Minute Express Bikram",
        "description": "A shorter version of the classic sequence for when you're short on time.",
        "duration_minutes": 30,
        "audio_url": AUDIO_BASE + "/Yoga+Practice+30+Mins.mp3",
        "yoga_type": "bikram",
    },
]


def seed_class_types(db, force=False):
    seeded = []
    for data in CLASS_TYPES:
        existing = db.get(ClassType, data["id"])
        if existing and not force:
            continue
        if existing:
            for key, value in data.items():
                setattr(existing, key, value)
            existing.active = True
        else:
            db.add(ClassType(active=True, **data))
        seeded.append(data["id"])
        logger.info("Seeded class type: %s", data["name"])
    db.commit()
    return seeded


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    session = SessionLocal()
    try:
        seed_class_types(session, force="--force" in sys.argv)
    finally:
        session.close()
