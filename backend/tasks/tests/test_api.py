from unittest.mock import patch

from django.db import OperationalError
from rest_framework.test import APIClient

from tasks.models import Task, TaskDependency, TaskStatus

from .base import TaskTestCase


class ApiTestCase(TaskTestCase):
    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)

    def create(self, **payload):
        response = self.client.post("/api/tasks/", payload, format="json")
        self.assertEqual(response.status_code, 201, response.data)
        return response.data


class TaskEndpointTests(ApiTestCase):
    def test_requires_authentication(self):
        response = APIClient().get("/api/tasks/")
        self.assertIn(response.status_code, (401, 403))

    def test_create_returns_full_task_view(self):
        data = self.create(title="  Plan trip ", priority="high", tags=["travel", "travel", " fun "])

        self.assertEqual(data["title"], "Plan trip")
        self.assertEqual(data["status"], "todo")
        self.assertEqual(data["priority"], "high")
        self.assertEqual(data["progress"], 0)
        self.assertEqual(data["tags"], ["travel", "fun"])
        self.assertIsNone(data["parent_task_id"])
        self.assertEqual(data["sub_tasks"], [])
        self.assertEqual(data["predecessor_dependencies"], [])
        self.assertEqual(data["successor_dependencies"], [])
        self.assertFalse(data["blocked"])

    def test_create_validates_payload(self):
        response = self.client.post("/api/tasks/", {"title": "x", "priority": "urgent"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("priority", response.data)

    def test_subtask_creation_and_rollup_visible_on_parent(self):
        parent = self.create(title="Parent")
        child = self.create(title="Child", parent_task_id=parent["id"])
        self.create(title="Other child", parent_task_id=parent["id"])

        response = self.client.patch(f"/api/tasks/{child['id']}/", {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.data["completed_at"])

        parent_view = self.client.get(f"/api/tasks/{parent['id']}/").data
        self.assertEqual(parent_view["progress"], 50)
        self.assertEqual(parent_view["status"], "in_progress")
        self.assertEqual([t["title"] for t in parent_view["sub_tasks"]], ["Child", "Other child"])

        subtasks = self.client.get(f"/api/tasks/{parent['id']}/subtasks/").data
        self.assertEqual([t["title"] for t in subtasks], ["Child", "Other child"])
        self.assertEqual(subtasks[0]["id"], child["id"])

    def test_other_users_task_is_404(self):
        foreign = self.make_task("Bob's", owner=self.bob)
        self.assertEqual(self.client.get(f"/api/tasks/{foreign.pk}/").status_code, 404)
        self.assertEqual(self.client.patch(f"/api/tasks/{foreign.pk}/", {"title": "x"}, format="json").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/tasks/{foreign.pk}/").status_code, 404)
        self.assertEqual(self.client.get(f"/api/tasks/{foreign.pk}/subtasks/").status_code, 404)

    def test_hierarchy_cycle_is_400(self):
        parent = self.create(title="Parent")
        child = self.create(title="Child", parent_task_id=parent["id"])

        response = self.client.patch(f"/api/tasks/{parent['id']}/", {"parent_task_id": child["id"]}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "invalid_argument")

    def test_list_filters(self):
        self.create(title="Buy milk", category_id=2)
        self.create(title="Read book")
        self.make_task("Bob's", owner=self.bob)

        titles = [t["title"] for t in self.client.get("/api/tasks/").data]
        self.assertEqual(titles, ["Read book", "Buy milk"])
        titles = [t["title"] for t in self.client.get("/api/tasks/", {"category_id": 2}).data]
        self.assertEqual(titles, ["Buy milk"])
        titles = [t["title"] for t in self.client.get("/api/tasks/", {"search": "book"}).data]
        self.assertEqual(titles, ["Read book"])
        self.assertEqual(self.client.get("/api/tasks/", {"category_id": "abc"}).status_code, 400)
        self.assertEqual(self.client.get("/api/tasks/", {"status": "paused"}).status_code, 400)

    def test_delete_returns_204_and_cascades(self):
        parent = self.create(title="Parent")
        self.create(title="Child", parent_task_id=parent["id"])

        response = self.client.delete(f"/api/tasks/{parent['id']}/")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Task.objects.filter(owner=self.alice).exists())

    def test_store_failure_is_503(self):
        with patch("tasks.lifecycle.TaskLifecycleCoordinator.get_task", side_effect=OperationalError("db gone")):
            response = self.client.get("/api/tasks/1/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["error"], "store_unavailable")


class DependencyEndpointTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.a = self.create(title="A")
        self.b = self.create(title="B")

    def link(self, task_id, **payload):
        return self.client.post(f"/api/tasks/{task_id}/dependencies/", payload, format="json")

    def test_create_and_list(self):
        response = self.link(self.b["id"], predecessor_task_id=self.a["id"], lag=2)
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["dependency_type"], "finish_to_start")
        self.assertEqual(response.data["lag"], 2)
        self.assertEqual(response.data["predecessor_task"]["title"], "A")
        self.assertEqual(response.data["successor_task_id"], self.b["id"])

        listing = self.client.get(f"/api/tasks/{self.b['id']}/dependencies/").data
        self.assertEqual(len(listing["predecessors"]), 1)
        self.assertEqual(listing["successors"], [])

        view = self.client.get(f"/api/tasks/{self.b['id']}/").data
        self.assertTrue(view["blocked"])
        self.assertEqual(view["predecessor_dependencies"][0]["predecessor_task_id"], self.a["id"])

    def test_error_codes(self):
        self.assertEqual(self.link(self.b["id"], predecessor_task_id=self.a["id"]).status_code, 201)

        duplicate = self.link(self.b["id"], predecessor_task_id=self.a["id"])
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.data["error"], "conflict")

        cycle = self.link(self.a["id"], predecessor_task_id=self.b["id"])
        self.assertEqual(cycle.status_code, 400)
        self.assertEqual(cycle.data["detail"], "would create cycle")

        self_dep = self.link(self.a["id"], predecessor_task_id=self.a["id"])
        self.assertEqual(self_dep.status_code, 400)

        missing = self.link(self.a["id"], predecessor_task_id=999999)
        self.assertEqual(missing.status_code, 404)

        negative = self.link(self.b["id"], predecessor_task_id=self.a["id"], lag=-3)
        self.assertEqual(negative.status_code, 400)

        unrelated = self.create(title="C")
        stray = self.link(unrelated["id"], predecessor_task_id=self.a["id"], successor_task_id=self.b["id"])
        self.assertEqual(stray.status_code, 400)

    def test_status_gate_over_http(self):
        self.link(self.b["id"], predecessor_task_id=self.a["id"])

        blocked = self.client.patch(f"/api/tasks/{self.b['id']}/", {"status": "in_progress"}, format="json")
        self.assertEqual(blocked.status_code, 400)
        self.assertEqual(blocked.data["detail"], "blocked by dependency")

        self.client.patch(f"/api/tasks/{self.a['id']}/", {"status": "completed"}, format="json")
        allowed = self.client.patch(f"/api/tasks/{self.b['id']}/", {"status": "in_progress"}, format="json")
        self.assertEqual(allowed.status_code, 200)
        self.assertFalse(allowed.data["blocked"])

    def test_delete_dependency(self):
        edge_id = self.link(self.b["id"], predecessor_task_id=self.a["id"]).data["id"]

        self.client.force_authenticate(user=self.bob)
        self.assertEqual(self.client.delete(f"/api/dependencies/{edge_id}/").status_code, 404)

        self.client.force_authenticate(user=self.alice)
        self.assertEqual(self.client.delete(f"/api/dependencies/{edge_id}/").status_code, 204)
        self.assertFalse(TaskDependency.objects.exists())

    def test_deleting_task_removes_its_edges(self):
        self.link(self.b["id"], predecessor_task_id=self.a["id"])
        self.client.delete(f"/api/tasks/{self.a['id']}/")

        self.assertFalse(TaskDependency.objects.exists())
        self.assertEqual(Task.objects.get(pk=self.b["id"]).status, TaskStatus.TODO)
        view = self.client.get(f"/api/tasks/{self.b['id']}/").data
        self.assertFalse(view["blocked"])
