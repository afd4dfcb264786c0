from __future__ import annotations

import unittest
from unittest import mock

from support import StoreTestCase

from flowforge.api.api import api_router, create_dispatcher
from flowforge.api.router import CommandRouter


class CommandDispatchTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.dispatcher = create_dispatcher(self.store)

    def test_greet(self) -> None:
        result = self.dispatcher.invoke("greet", name="Ada")
        self.assertTrue(result.ok)
        self.assertEqual(result.data, "Hello, Ada! You've been greeted from FlowForge!")

    def test_idle_time(self) -> None:
        with mock.patch("flowforge.api.commands.system.system_idle_time", return_value=42):
            self.assertEqual(self.dispatcher.invoke("get_idle_time").data, 42)

    def test_unknown_command(self) -> None:
        result = self.dispatcher.invoke("drop_everything")
        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, "NotFound")

    def test_bad_arguments(self) -> None:
        result = self.dispatcher.invoke("get_client", id="x")
        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, "InvalidArgument")

    def test_timer_flow_returns_json(self) -> None:
        client = self.dispatcher.invoke("create_client", data={"name": "Acme", "hourly_rate": "80"})
        self.assertTrue(client.ok)
        self.assertEqual(client.data["hourly_rate"], "80.0")
        project = self.dispatcher.invoke("create_project", data={"name": "Website", "client_id": client.data["id"]})

        started = self.dispatcher.invoke(
            "create_time_entry", project_id=project.data["id"], start_time="2026-01-05T09:00:00Z"
        )
        duplicate = self.dispatcher.invoke(
            "create_time_entry", project_id=project.data["id"], start_time="2026-01-05T09:05:00Z"
        )
        stopped = self.dispatcher.invoke(
            "stop_time_entry", entry_id=started.data, end_time="2026-01-05T11:30:00Z", pause_duration=900
        )

        self.assertTrue(started.ok)
        self.assertFalse(duplicate.ok)
        self.assertEqual(duplicate.error.kind, "Conflict")
        self.assertEqual(stopped.data, 8100)

        invoice = self.dispatcher.invoke(
            "create_invoice_from_entries", client_id=client.data["id"], entry_ids=[started.data]
        )
        total = self.dispatcher.invoke("compute_invoice_total", invoice_id=invoice.data["id"])
        self.assertEqual(total.data["total"], "180.00")

        paid = self.dispatcher.invoke("transition_invoice", invoice_id=invoice.data["id"], status="paid")
        self.assertEqual(paid.error.kind, "InvalidState")

    def test_result_serializes(self) -> None:
        result = self.dispatcher.invoke("get_client", client_id="missing")
        self.assertEqual(
            result.model_dump(exclude_none=True),
            {"ok": False, "error": {"kind": "NotFound", "message": "Client not found", "detail": {"id": "missing"}}},
        )

    def test_every_command_is_registered_once(self) -> None:
        for name in ("greet", "get_idle_time", "create_client", "mark_entries_billed", "get_dashboard_data"):
            self.assertIn(name, api_router.commands)
        router = CommandRouter()
        with self.assertRaises(ValueError):
            router.include_router(api_router)
            router.include_router(api_router)


if __name__ == "__main__":
    unittest.main()
