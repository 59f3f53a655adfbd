import unittest

from helpers import DatabaseTestCase
from questionair.errors import NotFound, ValidationFailed
from questionair.schemas import TemplateCreate, TemplateField, TemplateUpdate
from questionair.services import templates as svc


class TemplateTests(DatabaseTestCase):
    async def _custom(self, name="Weekly wrap", owner=None):
        return await svc.create_template(
            self.db,
            owner or self.asker,
            TemplateCreate(name=name, fields=[TemplateField(key="high", label="High point")]),
        )

    async def test_system_templates_listed_first(self):
        await self._custom(name="Aaa custom")
        names = [t.name for t in await svc.list_templates(self.db, self.asker)]
        self.assertEqual(names[-1], "Aaa custom")
        self.assertIn("Rose, Bud, Thorn", names)

    async def test_disabled_template_hidden_from_others_only(self):
        t = await self._custom()
        await svc.update_template(self.db, self.asker, t.id, TemplateUpdate(is_enabled=False))

        mine = [x.id for x in await svc.list_templates(self.db, self.asker)]
        theirs = [x.id for x in await svc.list_templates(self.db, self.responder)]
        self.assertIn(t.id, mine)
        self.assertNotIn(t.id, theirs)

    async def test_system_template_structure_is_fixed(self):
        system = [t for t in await svc.list_templates(self.db, self.asker) if t.is_system][0]
        with self.assertRaises(ValidationFailed):
            await svc.update_template(self.db, self.asker, system.id, TemplateUpdate(name="Mine now"))

        await svc.update_template(self.db, self.responder, system.id, TemplateUpdate(is_enabled=False))
        self.assertFalse(system.is_enabled)
        with self.assertRaises(NotFound):
            await svc.delete_template(self.db, self.asker, system.id)

    async def test_only_creator_edits_and_deletes(self):
        t = await self._custom()
        with self.assertRaises(ValidationFailed):
            await svc.update_template(self.db, self.responder, t.id, TemplateUpdate(description="hijack"))
        with self.assertRaises(NotFound):
            await svc.delete_template(self.db, self.responder, t.id)

        await svc.update_template(self.db, self.asker, t.id, TemplateUpdate(description=" Fridays "))
        self.assertEqual(t.description, "Fridays")
        await svc.delete_template(self.db, self.asker, t.id)
        with self.assertRaises(NotFound):
            await svc.update_template(self.db, self.asker, t.id, TemplateUpdate(is_enabled=True))

    def test_fields_are_required(self):
        with self.assertRaises(ValueError):
            TemplateCreate(name="Empty", fields=[])


if __name__ == "__main__":
    unittest.main()
