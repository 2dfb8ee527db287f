from datetime import datetime, timedelta

from models.priority import Priority
from models.status import Status
from models.task import Task
from services import task_service, taxonomy_service
from services.errors import NotFoundError, ValidationError
from tests.utils.db import DatabaseTestCase


class TaskServiceTestCase(DatabaseTestCase):
    def test_create_task_applies_defaults(self):
        with self.app.app_context():
            task = task_service.create_task({})

            self.assertEqual(task.name, "Untitled task")
            self.assertEqual(task.priority, "Medium")
            self.assertEqual(task.status, "To Do")
            self.assertEqual(task.category, "")
            self.assertEqual(task.attachments, [])
            self.assertIsNone(task.project_id)

    def test_create_task_with_relations_and_nested_items(self):
        with self.app.app_context():
            project = taxonomy_service.create_project({"name": "Launch"})
            tag = taxonomy_service.create_tag({"name": "marketing"})
            user = taxonomy_service.create_user({"name": "Ada Lovelace", "email": "ada@example.com"})

            task = task_service.create_task(
                {
                    "name": "Prepare press kit",
                    "content": "**Bold** plan",
                    "project_id": project.id,
                    "tag_ids": [tag.id],
                    "assigned_user_ids": [user.id],
                    "due_date": "2024-05-01T12:00:00+02:00",
                    "attachments": ["https://example.com/brief.pdf"],
                    "checklist": [{"text": "Draft", "actions": [{"text": "Outline"}]}],
                    "subtasks": [
                        {"name": "Photos", "checklist": [{"text": "Book studio", "completed": True}]}
                    ],
                }
            )

            payload = task.to_dict()
            self.assertEqual(payload["project_name"], "Launch")
            self.assertEqual(payload["tags"], ["marketing"])
            self.assertEqual(payload["assigned_user_names"], ["Ada Lovelace"])
            self.assertEqual(payload["due_date"], "2024-05-01T10:00:00")
            self.assertIn("<strong>Bold</strong>", payload["content_html"])
            self.assertEqual(payload["checklist"][0]["actions"][0]["text"], "Outline")
            self.assertEqual(payload["subtasks"][0]["status"], "To Do")
            self.assertTrue(payload["subtasks"][0]["checklist"][0]["completed"])

    def test_create_task_rejects_unknown_references(self):
        with self.app.app_context():
            with self.assertRaises(NotFoundError):
                task_service.create_task({"project_id": 404})
            with self.assertRaises(NotFoundError):
                task_service.create_task({"tag_ids": [404]})
            with self.assertRaises(ValidationError):
                task_service.create_task({"due_date": "next tuesday"})
            self.assertEqual(Task.query.count(), 0)

    def test_update_touches_updated_at(self):
        with self.app.app_context():
            task = task_service.create_task({"name": "Old"})
            task.updated_at = datetime(2020, 1, 1)
            self.db.session.commit()

            task = task_service.update_task(task.id, {"name": "New", "due_date": ""})

            self.assertEqual(task.name, "New")
            self.assertIsNone(task.due_date)
            self.assertGreater(task.updated_at, datetime(2020, 1, 1))

    def test_checklist_and_action_items(self):
        with self.app.app_context():
            task = task_service.create_task({"name": "Ship"})
            item = task_service.add_checklist_item(task.id, "Write notes")
            action = task_service.add_action_item(task.id, item.id, "Ask reviewer")

            task_service.toggle_checklist_item(task.id, item.id)
            task_service.toggle_action_item(task.id, item.id, action.id)

            task = task_service.get_task(task.id)
            self.assertTrue(task.checklist[0].completed)
            self.assertTrue(task.checklist[0].actions[0].completed)

            task_service.delete_action_item(task.id, item.id, action.id)
            task_service.delete_checklist_item(task.id, item.id)
            self.assertEqual(task_service.get_task(task.id).checklist, [])

            with self.assertRaises(ValidationError):
                task_service.add_checklist_item(task.id, "   ")
            with self.assertRaises(NotFoundError):
                task_service.toggle_checklist_item(task.id, 999)

    def test_subtask_checklists(self):
        with self.app.app_context():
            task = task_service.create_task({"name": "Release"})
            subtask = task_service.add_subtask(task.id, {"name": "Changelog", "priority": "High"})
            item = task_service.add_checklist_item(task.id, "Collect PRs", subtask_id=subtask.id)
            task_service.toggle_checklist_item(task.id, item.id, subtask_id=subtask.id)

            task = task_service.get_task(task.id)
            self.assertEqual(task.subtasks[0].priority, "High")
            self.assertTrue(task.subtasks[0].checklist[0].completed)
            self.assertEqual(task.checklist, [])

            with self.assertRaises(NotFoundError):
                task_service.toggle_checklist_item(task.id, item.id)

            task_service.update_subtask(task.id, subtask.id, {"status": "Done"})
            self.assertEqual(task_service.get_task(task.id).subtasks[0].status, "Done")

            task_service.delete_subtask(task.id, subtask.id)
            self.assertEqual(task_service.get_task(task.id).subtasks, [])

    def test_progress_prefers_checklist_then_status(self):
        with self.app.app_context():
            self.db.session.add(Status(name="Shipped", value="shipped", is_completion_status=True))
            self.db.session.commit()

            task = task_service.create_task(
                {
                    "checklist": [{"text": "a", "completed": True}, {"text": "b"}],
                    "subtasks": [{"name": "s", "checklist": [{"text": "c"}, {"text": "d"}]}],
                }
            )
            self.assertEqual(task_service.task_progress(task), 25)

            self.assertEqual(task_service.task_progress(task_service.create_task({"status": "Shipped"})), 100)
            self.assertEqual(task_service.task_progress(task_service.create_task({"status": "In Progress"})), 50)
            self.assertEqual(task_service.task_progress(task_service.create_task({})), 10)
            self.assertEqual(task_service.task_progress(task_service.create_task({"status": "Blocked"})), 0)

    def test_filter_and_sort(self):
        with self.app.app_context():
            for name, order in (("High", 0), ("Medium", 1), ("Low", 2)):
                self.db.session.add(Priority(name=name, value=name.lower(), order=order))
            self.db.session.commit()

            now = datetime(2024, 5, 1, 9, 0)
            low = task_service.create_task({"name": "low", "priority": "Low", "due_date": now})
            high = task_service.create_task({"name": "high", "priority": "High"})
            odd = task_service.create_task(
                {"name": "odd", "priority": "Whenever", "due_date": now - timedelta(days=1)}
            )
            for offset, task in enumerate((low, high, odd)):
                task.created_at = now + timedelta(minutes=offset)
                task.updated_at = now - timedelta(minutes=offset)
            self.db.session.commit()

            def names(**kwargs):
                return [task.name for task in task_service.filter_and_sort_tasks(**kwargs)]

            self.assertEqual(names(), ["low", "high", "odd"])
            self.assertEqual(names(sort="created_at_desc"), ["odd", "high", "low"])
            self.assertEqual(names(sort="due_date_asc"), ["odd", "low", "high"])
            self.assertEqual(names(sort="priority"), ["high", "low", "odd"])
            self.assertEqual(names(priority="Low"), ["low"])

            with self.assertRaises(ValidationError):
                task_service.filter_and_sort_tasks(sort="alphabetical")


class TaskRoutesTestCase(DatabaseTestCase):
    def test_task_lifecycle_over_http(self):
        response = self.client.post("/tasks", json={"name": "Plan sprint", "tag_ids": []})
        self.assertEqual(response.status_code, 201)
        task = response.get_json()["task"]
        self.assertEqual(task["progress"], 10)

        response = self.client.post(f"/tasks/{task['id']}/checklist", json={"text": "Pick stories"})
        self.assertEqual(response.status_code, 201)
        item_id = response.get_json()["task"]["checklist"][0]["id"]

        response = self.client.post(f"/tasks/{task['id']}/checklist/{item_id}/toggle", json={})
        self.assertEqual(response.get_json()["task"]["progress"], 100)

        response = self.client.post(f"/tasks/{task['id']}", json={"status": "In Progress"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["task"]["status"], "In Progress")

        response = self.client.get("/tasks?status=In%20Progress")
        self.assertEqual([t["name"] for t in response.get_json()["tasks"]], ["Plan sprint"])

        response = self.client.post(f"/tasks/{task['id']}/delete", json={})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/tasks/{task['id']}").status_code, 404)

    def test_invalid_project_id_fails_validation(self):
        response = self.client.post("/tasks", json={"project_id": "abc"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("project_id", response.get_json()["errors"])

    def test_list_rejects_malformed_project_filter(self):
        self.client.post("/tasks", json={"name": "Plan sprint"})

        response = self.client.get("/tasks?project_id=abc")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["field"], "project_id")

    def test_checklist_rejects_malformed_subtask_id(self):
        task = self.client.post("/tasks", json={"name": "Plan sprint"}).get_json()["task"]

        response = self.client.post(
            f"/tasks/{task['id']}/checklist", json={"text": "Book room", "subtask_id": "x"}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["field"], "subtask_id")

    def test_home_redirects_to_task_list(self):
        response = self.client.get("/")

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers["Location"].endswith("/tasks"))
