import unittest
from datetime import timedelta

from sqlalchemy import select

from helpers import DatabaseTestCase
from questionair.errors import Forbidden, NotFound, ValidationFailed
from questionair.models import (
    Depth,
    EventType,
    Question,
    QuestionStatus,
    QuestionVersion,
    User,
    utcnow,
)
from questionair.schemas import QuestionCreate, QuestionUpdate, ResponseCreate
from questionair.services import questions as svc
from questionair.services.responses import create_response


class QuestionLifecycleTests(DatabaseTestCase):
    async def _ask(self, body="How are you?", **extra):
        return await svc.create_question(self.db, self.notifier, self.asker, QuestionCreate(body=body, **extra))

    async def _versions(self, question_id):
        rows = await self.db.execute(
            select(QuestionVersion)
            .where(QuestionVersion.question_id == question_id)
            .order_by(QuestionVersion.created_at.asc())
        )
        return rows.scalars().all()

    async def test_create_targets_the_other_user_and_snapshots_once(self):
        q = await self._ask(title="  Check-in ", depth=Depth.quick)

        self.assertEqual(q.author_user_id, self.asker.id)
        self.assertEqual(q.target_user_id, self.responder.id)
        self.assertEqual(q.status, QuestionStatus.new)
        self.assertEqual(q.title, "Check-in")
        versions = await self._versions(q.id)
        self.assertEqual([(v.title, v.body) for v in versions], [("Check-in", "How are you?")])
        self.assertEqual(self.notifier.types(), [EventType.new_question.value])
        self.assertEqual(self.notifier.events[0].user_id, self.responder.id)

    async def test_create_rejects_blank_body(self):
        with self.assertRaises(ValidationFailed):
            await self._ask(body="   ")

    async def test_create_with_cooldown_hours(self):
        before = utcnow()
        q = await self._ask(cooldown_hours=2)
        self.assertGreaterEqual(q.cooldown_until, before + timedelta(hours=2))

    async def test_each_content_edit_appends_a_version(self):
        q = await self._ask(body="v0")
        for i in range(1, 4):
            await svc.update_question(self.db, self.notifier, self.asker, q.id, QuestionUpdate(body=f"v{i}"))

        versions = await self._versions(q.id)
        self.assertEqual([v.body for v in versions], ["v0", "v1", "v2", "v3"])
        self.assertTrue(all(v.edited_by_user_id == self.asker.id for v in versions))

    async def test_depth_only_edit_does_not_version(self):
        q = await self._ask()
        await svc.update_question(self.db, self.notifier, self.asker, q.id, QuestionUpdate(depth=Depth.deep))
        self.assertEqual(len(await self._versions(q.id)), 1)
        self.assertEqual(q.depth, Depth.deep)

    async def test_role_filtering_ignores_fields_of_the_other_role(self):
        q = await self._ask()

        # the author cannot change status; with nothing else sent it is a bad request
        with self.assertRaises(ValidationFailed):
            await svc.update_question(
                self.db, self.notifier, self.asker, q.id, QuestionUpdate(status=QuestionStatus.declined)
            )

        # the target's body edit is silently dropped, the status change applies
        await svc.update_question(
            self.db,
            self.notifier,
            self.responder,
            q.id,
            QuestionUpdate(body="rewritten", status=QuestionStatus.holding),
        )
        await self.db.refresh(q)
        self.assertEqual(q.body, "How are you?")
        self.assertEqual(q.status, QuestionStatus.holding)

    async def test_update_unknown_question_is_not_found(self):
        with self.assertRaises(NotFound):
            await svc.update_question(self.db, self.notifier, self.asker, "missing", QuestionUpdate(body="x"))

    async def test_outsider_is_forbidden(self):
        q = await self._ask()
        outsider = User(username="Third", display_name="Third", hashed_password="x")
        self.db.add(outsider)
        await self.db.commit()

        with self.assertRaises(Forbidden):
            await svc.update_question(self.db, self.notifier, outsider, q.id, QuestionUpdate(body="x"))

    async def test_cooldown_set_and_clear_by_target(self):
        q = await self._ask()
        await svc.update_question(
            self.db,
            self.notifier,
            self.responder,
            q.id,
            QuestionUpdate(cooldown_hours=24, cooldown_reason=" later ", status=QuestionStatus.holding),
        )
        self.assertAlmostEqual(
            (q.cooldown_until - utcnow()).total_seconds(), 24 * 3600, delta=60
        )
        self.assertEqual(q.cooldown_reason, "later")

        await svc.update_question(self.db, self.notifier, self.responder, q.id, QuestionUpdate(cooldown_hours=0))
        self.assertIsNone(q.cooldown_until)
        self.assertEqual(q.status, QuestionStatus.holding)

    async def test_question_edited_only_fires_once_answered(self):
        q = await self._ask()
        await svc.update_question(self.db, self.notifier, self.asker, q.id, QuestionUpdate(body="edit 1"))
        self.assertNotIn(EventType.question_edited.value, self.notifier.types())

        # a draft does not count as an answer
        await create_response(
            self.db, self.notifier, self.responder, ResponseCreate(question_id=q.id, body_text="hm", is_draft=True)
        )
        await svc.update_question(self.db, self.notifier, self.asker, q.id, QuestionUpdate(body="edit 2"))
        self.assertNotIn(EventType.question_edited.value, self.notifier.types())

        await create_response(
            self.db, self.notifier, self.responder, ResponseCreate(question_id=q.id, body_text="Good!")
        )
        await svc.update_question(self.db, self.notifier, self.asker, q.id, QuestionUpdate(title="new title"))
        self.assertEqual(self.notifier.types().count(EventType.question_edited.value), 1)


class QuestionListingTests(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.qs = {}
        for name, depth, heavy, status in (
            ("a", Depth.quick, False, QuestionStatus.active),
            ("b", Depth.medium, True, QuestionStatus.holding),
            ("c", Depth.quick, False, QuestionStatus.new),
            ("d", Depth.deep, False, QuestionStatus.declined),
        ):
            q = await svc.create_question(
                self.db, self.notifier, self.asker, QuestionCreate(body=name, depth=depth, is_heavy=heavy)
            )
            q.status = status
            self.qs[name] = q
        await self.db.commit()

    async def test_filters_and_total(self):
        items, total = await svc.list_inbox(self.db, self.responder, depth=Depth.quick)
        self.assertEqual(total, 2)
        self.assertEqual({i.body for i in items}, {"a", "c"})

        items, total = await svc.list_inbox(self.db, self.responder, show_heavy="only")
        self.assertEqual([i.body for i in items], ["b"])

        items, total = await svc.list_inbox(self.db, self.responder, show_heavy="false", limit=1)
        self.assertEqual(len(items), 1)
        self.assertEqual(total, 3)

    async def test_needs_attention_sort(self):
        items, _ = await svc.list_inbox(self.db, self.responder, sort="needs_attention")
        self.assertEqual([i.body for i in items][:2], ["c", "b"])
        self.assertEqual({i.body for i in items[2:]}, {"a", "d"})

    async def test_oldest_and_random_sorts(self):
        items, _ = await svc.list_inbox(self.db, self.responder, sort="oldest")
        self.assertEqual([i.body for i in items], ["a", "b", "c", "d"])
        items, total = await svc.list_inbox(self.db, self.responder, sort="random")
        self.assertEqual(sorted(i.body for i in items), ["a", "b", "c", "d"])
        self.assertEqual(total, 4)

    async def test_inbox_is_scoped_to_target(self):
        items, total = await svc.list_inbox(self.db, self.asker)
        self.assertEqual((items, total), ([], 0))

    async def test_response_flags_and_counts_skip_drafts(self):
        qid = self.qs["c"].id
        await create_response(
            self.db, self.notifier, self.responder, ResponseCreate(question_id=qid, body_text="draft", is_draft=True)
        )
        items, _ = await svc.list_inbox(self.db, self.responder, depth=Depth.quick, sort="oldest")
        c = [i for i in items if i.id == qid][0]
        self.assertEqual(c.response_count, 0)
        self.assertTrue(c.has_draft)
        self.assertEqual(c.status, QuestionStatus.new)

        sent = await svc.list_sent(self.db, self.asker)
        self.assertEqual(len(sent), 4)
        self.assertEqual(sent[0].target_name, "Gerrod")

    async def test_stats(self):
        await create_response(
            self.db, self.notifier, self.responder, ResponseCreate(question_id=self.qs["a"].id, body_text="yes")
        )
        stats = await svc.question_stats(self.db, self.responder)
        self.assertEqual(stats.inbox.total, 4)
        self.assertEqual(stats.inbox.new, 1)
        self.assertEqual(stats.inbox.holding, 1)
        self.assertEqual(stats.inbox.heavy, 1)
        self.assertEqual(stats.inbox.quick_available, 1)

        sent = (await svc.question_stats(self.db, self.asker)).sent
        self.assertEqual((sent.total, sent.answered, sent.unanswered), (4, 1, 3))

    async def test_detail_visibility(self):
        qid = self.qs["a"].id
        await create_response(
            self.db, self.notifier, self.responder, ResponseCreate(question_id=qid, body_text="wip", is_draft=True)
        )

        as_target = await svc.get_question_detail(self.db, self.responder, qid)
        self.assertTrue(as_target.question.is_target)
        self.assertFalse(as_target.question.is_owner)
        self.assertEqual(len(as_target.responses), 1)
        self.assertEqual(as_target.versions[0].editor_name, "Adrianna")

        # the asker does not see the responder's unsent draft
        as_owner = await svc.get_question_detail(self.db, self.asker, qid)
        self.assertTrue(as_owner.question.is_owner)
        self.assertEqual(as_owner.responses, [])
        self.assertEqual(as_owner.question.response_count, 0)

    async def test_detail_hides_existence_from_outsiders(self):
        outsider = User(username="Third", display_name="Third", hashed_password="x")
        self.db.add(outsider)
        await self.db.commit()
        with self.assertRaises(NotFound):
            await svc.get_question_detail(self.db, outsider, self.qs["a"].id)


if __name__ == "__main__":
    unittest.main()
