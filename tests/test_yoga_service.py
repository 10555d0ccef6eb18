import unittest
from datetime import timedelta

from backend.seed_data import CLASS_TYPES, seed_class_types
from backend.services import yoga_service

from factories import at, make_class_type, make_scheduled_class, reset_db


class YogaServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = reset_db()
        self.class_type = make_class_type(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_class_types_only_active_sorted_by_name(self) -> None:
        make_class_type(self.db, name="30-Minute Express Bikram")
        make_class_type(self.db, name="Archived Flow", active=False)
        names = [t.name for t in yoga_service.fetch_class_types(self.db)]
        self.assertEqual(names, ["30-Minute Express Bikram", "90-Minute Bikram Yoga"])

    def test_upcoming_excludes_past_private_and_cancelled(self) -> None:
        later = make_scheduled_class(self.db, self.class_type, at(minutes=120))
        sooner = make_scheduled_class(self.db, self.class_type, at(minutes=30))
        make_scheduled_class(self.db, self.class_type, at(minutes=-30))
        make_scheduled_class(self.db, self.class_type, at(minutes=60), is_public=False)
        make_scheduled_class(self.db, self.class_type, at(minutes=60), status="cancelled")

        upcoming = yoga_service.fetch_upcoming_classes(self.db)

        self.assertEqual([c.id for c in upcoming], [sooner.id, later.id])
        self.assertEqual(yoga_service.fetch_next_scheduled_class(self.db).id, sooner.id)
        self.assertEqual(upcoming[0].yoga_class_type.name, "90-Minute Bikram Yoga")

    def test_next_class_is_none_without_upcoming(self) -> None:
        make_scheduled_class(self.db, self.class_type, at(minutes=-30))
        self.assertIsNone(yoga_service.fetch_next_scheduled_class(self.db))

    def test_past_classes_newest_first_with_paging(self) -> None:
        oldest = make_scheduled_class(self.db, self.class_type, at(minutes=-300), status="completed")
        middle = make_scheduled_class(self.db, self.class_type, at(minutes=-200), status="cancelled")
        newest = make_scheduled_class(self.db, self.class_type, at(minutes=-100))
        make_scheduled_class(self.db, self.class_type, at(minutes=100))

        page = yoga_service.fetch_past_classes(self.db, limit=2)
        self.assertEqual([c.id for c in page], [newest.id, middle.id])
        page = yoga_service.fetch_past_classes(self.db, limit=2, offset=2)
        self.assertEqual([c.id for c in page], [oldest.id])

    def test_create_requires_future_start(self) -> None:
        with self.assertRaises(yoga_service.SchedulingError):
            yoga_service.create_scheduled_class(self.db, self.class_type.id, at(minutes=-1))

    def test_create_requires_active_class_type(self) -> None:
        archived = make_class_type(self.db, name="Archived", active=False)
        with self.assertRaises(yoga_service.ClassTypeNotFoundError):
            yoga_service.create_scheduled_class(self.db, archived.id, at(minutes=10))

    def test_create_defaults(self) -> None:
        sched = yoga_service.create_scheduled_class(self.db, self.class_type.id, at(minutes=10), recurrence="none")
        self.assertEqual(sched.status, "scheduled")
        self.assertTrue(sched.is_public)
        self.assertIsNone(sched.recurrence)
        self.assertEqual(sched.current_participants, 0)

    def test_registration_counts_and_capacity(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(minutes=60), max_participants=1)

        participant = yoga_service.register_for_class(self.db, sched.id, user_email="ada@example.com")
        self.assertEqual(participant.attendance_status, "registered")
        self.db.refresh(sched)
        self.assertEqual(sched.current_participants, 1)

        with self.assertRaises(yoga_service.ClassFullError):
            yoga_service.register_for_class(self.db, sched.id, user_email="bob@example.com")

    def test_registration_for_unknown_class(self) -> None:
        with self.assertRaises(yoga_service.ClassNotFoundError):
            yoga_service.register_for_class(self.db, "nope")

    def test_status_update(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(minutes=60))
        updated = yoga_service.update_class_status(self.db, sched.id, "cancelled")
        self.assertEqual(updated.status, "cancelled")
        with self.assertRaises(yoga_service.SchedulingError):
            yoga_service.update_class_status(self.db, sched.id, "postponed")

    def test_start_time_keeps_the_instant(self) -> None:
        start = at(minutes=45).replace(microsecond=0)
        sched = yoga_service.create_scheduled_class(self.db, self.class_type.id, start)
        stored = yoga_service.fetch_scheduled_class_by_id(self.db, sched.id).scheduled_start_time
        self.assertLess(abs((stored.replace(tzinfo=None) - start.replace(tzinfo=None))), timedelta(seconds=1))


class SeedDataTests(unittest.TestCase):
    def test_seed_adds_missing_types_once(self) -> None:
        db = reset_db()
        try:
            self.assertEqual(len(seed_class_types(db)), len(CLASS_TYPES))
            self.assertEqual(seed_class_types(db), [])
            durations = {t.id: t.duration_minutes for t in yoga_service.fetch_class_types(db)}
            self.assertEqual(durations["bikram-30"], 30)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
