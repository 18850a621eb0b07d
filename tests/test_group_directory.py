"""Tests for GroupDirectory."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from groupchat import create_app
from groupchat.errors import (
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from groupchat.group.services import GroupDirectory
from tests.conftest import array_transform_patchers, patch_mockfirestore


class GroupDirectoryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = MockFirestore()
        for p in array_transform_patchers():
            p.start()
            self.addCleanup(p.stop)
        self.app = create_app({"TESTING": True})
        self.app_context = self.app.app_context()
        self.app_context.push()

        self.db.collection("users").document("u1").set(
            {
                "name": "Ada",
                "email": "ada@example.com",
                "profilePictureUrl": "http://img/ada.png",
                "passwordHash": "secret",
            }
        )
        self.db.collection("users").document("u2").set(
            {"name": "Bo", "email": "bo@example.com"}
        )

    def tearDown(self) -> None:
        self.app_context.pop()

    def _stored(self, group_id: str) -> dict:
        return self.db.collection("groups").document(group_id).get().to_dict()

    def _create(self, members=None) -> dict:
        return GroupDirectory.create(
            self.db, "Team", "Our team", "u1", members if members is not None else ["u2"]
        )

    def test_create_adds_admin_to_members(self) -> None:
        group = self._create()
        self.assertEqual(group["admin"], "u1")
        self.assertEqual(set(group["members"]), {"u1", "u2"})
        stored = self._stored(group["id"])
        self.assertEqual(stored["name"], "Team")
        self.assertEqual(stored["members"], ["u2", "u1"])
        self.assertEqual(stored["groupImage"], "")
        self.assertIn("createdAt", stored)

    def test_create_deduplicates_members(self) -> None:
        group = self._create(members=["u2", "u1", "u2"])
        self.assertEqual(group["members"], ["u2", "u1"])

    def test_create_without_members(self) -> None:
        group = GroupDirectory.create(self.db, "Solo", None, "u1")
        self.assertEqual(group["members"], ["u1"])
        self.assertEqual(group["description"], "")

    def test_create_requires_name(self) -> None:
        for name in (None, "", "   "):
            with self.assertRaises(ValidationError):
                GroupDirectory.create(self.db, name, "", "u1", [])
        self.assertEqual(list(self.db.collection("groups").stream()), [])

    def test_create_rejects_malformed_members(self) -> None:
        with self.assertRaises(ValidationError):
            GroupDirectory.create(self.db, "Team", "", "u1", "u2")
        with self.assertRaises(ValidationError):
            GroupDirectory.create(self.db, "Team", "", "u1", [42])

    def test_create_uploads_image(self) -> None:
        uploader = MagicMock(return_value="http://cdn/group.png")
        group = GroupDirectory.create(
            self.db, "Team", "", "u1", [], image="data:image/png;base64,AAAA",
            uploader=uploader,
        )
        uploader.assert_called_once_with("data:image/png;base64,AAAA", "group_images")
        self.assertEqual(group["groupImage"], "http://cdn/group.png")

    def test_create_upload_failure_writes_nothing(self) -> None:
        uploader = MagicMock(side_effect=UploadError())
        with self.assertRaises(UploadError):
            GroupDirectory.create(
                self.db, "Team", "", "u1", [], image="data:image/png;base64,AAAA",
                uploader=uploader,
            )
        self.assertEqual(list(self.db.collection("groups").stream()), [])

    def test_get_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            GroupDirectory.get(self.db, "missing")

    def test_get_populated_projects_profiles(self) -> None:
        group = self._create()
        populated = GroupDirectory.get_populated(self.db, group["id"], "u2")
        self.assertEqual(
            populated["admin"],
            {
                "id": "u1",
                "name": "Ada",
                "email": "ada@example.com",
                "profilePictureUrl": "http://img/ada.png",
            },
        )
        self.assertEqual([m["id"] for m in populated["members"]], ["u2", "u1"])
        self.assertNotIn("passwordHash", populated["admin"])

    def test_populate_reads_profiles_in_one_batch(self) -> None:
        group = self._create(members=["u2", "ghost"])
        with patch.object(self.db, "get_all", wraps=self.db.get_all) as get_all:
            populated = GroupDirectory.get_populated(self.db, group["id"], "u1")
        get_all.assert_called_once()
        self.assertEqual(len(get_all.call_args[0][0]), 3)
        self.assertEqual(
            [m["name"] for m in populated["members"]], ["Bo", "Unknown", "Ada"]
        )

    def test_get_populated_forbidden_for_non_member(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.get_populated(self.db, group["id"], "u3")

    def test_get_populated_unknown_user(self) -> None:
        group = self._create(members=["ghost"])
        populated = GroupDirectory.get_populated(self.db, group["id"], "u1")
        self.assertEqual(populated["members"][0], {"id": "ghost", "name": "Unknown"})

    def test_list_for_user(self) -> None:
        team = self._create()
        GroupDirectory.create(self.db, "Other", "", "u3", [])
        groups = GroupDirectory.list_for_user(self.db, "u2")
        self.assertEqual([g["id"] for g in groups], [team["id"]])
        self.assertEqual(groups[0]["admin"]["name"], "Ada")
        self.assertEqual(
            {m["id"] for m in groups[0]["members"]}, {"u1", "u2"}
        )

    def test_list_for_user_without_groups(self) -> None:
        self._create()
        self.assertEqual(GroupDirectory.list_for_user(self.db, "u9"), [])

    def test_update_applies_only_provided_fields(self) -> None:
        group = self._create()
        updated = GroupDirectory.update(self.db, group["id"], "u1", name="Renamed")
        self.assertEqual(updated["name"], "Renamed")
        self.assertEqual(updated["description"], "Our team")
        stored = self._stored(group["id"])
        self.assertEqual(stored["name"], "Renamed")
        self.assertEqual(stored["description"], "Our team")

    def test_update_rejects_blank_name(self) -> None:
        group = self._create()
        with self.assertRaises(ValidationError):
            GroupDirectory.update(self.db, group["id"], "u1", name=" ")
        self.assertEqual(self._stored(group["id"])["name"], "Team")

    def test_update_requires_admin(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.update(self.db, group["id"], "u2", name="Mine now")

    def test_update_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            GroupDirectory.update(self.db, "missing", "u1", name="x")

    def test_update_reuploads_only_changed_image(self) -> None:
        group = self._create()
        self.db.collection("groups").document(group["id"]).update(
            {"groupImage": "http://cdn/old.png"}
        )
        uploader = MagicMock(return_value="http://cdn/new.png")

        GroupDirectory.update(
            self.db, group["id"], "u1", image="http://cdn/old.png", uploader=uploader
        )
        uploader.assert_not_called()

        updated = GroupDirectory.update(
            self.db, group["id"], "u1", image="data:image/png;base64,AAAA",
            uploader=uploader,
        )
        uploader.assert_called_once()
        self.assertEqual(updated["groupImage"], "http://cdn/new.png")
        self.assertEqual(self._stored(group["id"])["groupImage"], "http://cdn/new.png")

    def test_delete(self) -> None:
        group = self._create()
        self.db.collection("messages").document("m1").set(
            {"receiverId": group["id"], "isGroupMessage": True, "text": "hi"}
        )
        GroupDirectory.delete(self.db, group["id"], "u1")
        with self.assertRaises(NotFoundError):
            GroupDirectory.get(self.db, group["id"])
        self.assertTrue(self.db.collection("messages").document("m1").get().exists)

    def test_delete_requires_admin(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.delete(self.db, group["id"], "u2")
        self.assertIsNotNone(GroupDirectory.get(self.db, group["id"]))

    def test_add_members_is_idempotent_and_ordered(self) -> None:
        group = self._create()
        first = GroupDirectory.add_members(self.db, group["id"], "u1", ["u3", "u2"])
        second = GroupDirectory.add_members(self.db, group["id"], "u1", ["u3"])
        self.assertEqual([m["id"] for m in first["members"]], ["u2", "u1", "u3"])
        self.assertEqual([m["id"] for m in second["members"]], ["u2", "u1", "u3"])
        self.assertEqual(self._stored(group["id"])["members"], ["u2", "u1", "u3"])

    def test_add_members_with_repeated_ids(self) -> None:
        group = self._create()
        GroupDirectory.add_members(self.db, group["id"], "u1", ["u4", "u4", "u1"])
        members = self._stored(group["id"])["members"]
        self.assertEqual(len(members), len(set(members)))
        self.assertIn("u1", members)

    def test_add_members_requires_admin(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.add_members(self.db, group["id"], "u2", ["u3"])

    def test_add_members_checks_access_before_input(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.add_members(self.db, group["id"], "u2", [])
        with self.assertRaises(NotFoundError):
            GroupDirectory.add_members(self.db, "missing", "u1", [])

    def test_remove_member_keeps_concurrent_additions(self) -> None:
        group = self._create()
        stale = GroupDirectory.get(self.db, group["id"])
        GroupDirectory.add_members(self.db, group["id"], "u1", ["u3"])

        with patch.object(GroupDirectory, "get", return_value=stale):
            GroupDirectory.remove_member(self.db, group["id"], "u1", "u2")
        self.assertEqual(self._stored(group["id"])["members"], ["u1", "u3"])

    def test_add_members_does_not_restore_concurrent_removals(self) -> None:
        group = self._create()
        stale = GroupDirectory.get(self.db, group["id"])
        GroupDirectory.remove_member(self.db, group["id"], "u1", "u2")

        with patch.object(GroupDirectory, "get", return_value=stale):
            GroupDirectory.add_members(self.db, group["id"], "u1", ["u3"])
        self.assertEqual(self._stored(group["id"])["members"], ["u1", "u3"])

    def test_add_members_requires_ids(self) -> None:
        group = self._create()
        with self.assertRaises(ValidationError):
            GroupDirectory.add_members(self.db, group["id"], "u1", [])

    def test_remove_member(self) -> None:
        group = self._create()
        GroupDirectory.remove_member(self.db, group["id"], "u1", "u2")
        self.assertEqual(self._stored(group["id"])["members"], ["u1"])

    def test_remove_admin_is_invalid(self) -> None:
        group = self._create()
        with self.assertRaises(InvalidOperationError):
            GroupDirectory.remove_member(self.db, group["id"], "u1", "u1")
        self.assertEqual(self._stored(group["id"])["members"], ["u2", "u1"])

    def test_remove_member_requires_admin(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.remove_member(self.db, group["id"], "u2", "u1")

    def test_leave(self) -> None:
        group = self._create()
        GroupDirectory.leave(self.db, group["id"], "u2")
        self.assertEqual(self._stored(group["id"])["members"], ["u1"])

    def test_admin_cannot_leave(self) -> None:
        group = self._create()
        with self.assertRaises(InvalidOperationError):
            GroupDirectory.leave(self.db, group["id"], "u1")
        self.assertIn("u1", self._stored(group["id"])["members"])

    def test_non_member_cannot_leave(self) -> None:
        group = self._create()
        with self.assertRaises(ForbiddenError):
            GroupDirectory.leave(self.db, group["id"], "u3")


if __name__ == "__main__":
    unittest.main()
