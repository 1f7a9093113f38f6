"""
Tests for the HTTP API.
"""

import unittest
from decimal import Decimal
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from parking_sessions.api.router import init_router, router
from parking_sessions.config import AppConfig, LotConfig, ScanningConfig, VehicleConfig
from parking_sessions.errors import Unavailable
from parking_sessions.main import build_engine


def make_client():
    config = AppConfig(
        lots=[LotConfig(id="L1", name="Main Gate", rate_per_hour=10)],
        vehicles=[VehicleConfig(id="veh-001", vehicle_number="KA01AB1234")],
        scanning=ScanningConfig(duplicate_window_seconds=0),
    )
    engine, vehicles = build_engine(config)
    init_router(engine, vehicles)

    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    return TestClient(app), engine


class TestScanEndpoints(unittest.TestCase):
    """Scan and manual entry processing"""

    def setUp(self):
        self.client, self.engine = make_client()

    def test_scan_entry_then_exit(self):
        entry = self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L1"})
        self.assertEqual(entry.status_code, 200)
        self.assertEqual(entry.json()["status"], "Success")
        self.assertEqual(entry.json()["kind"], "entry")
        self.assertEqual(Decimal(entry.json()["charge_amount"]), 0)

        sessions = self.client.get("/api/v1/lots/L1/sessions").json()["sessions"]
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0]["vehicle_number"], "KA01AB1234")

        exit_ = self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L1"})
        self.assertEqual(exit_.json()["kind"], "exit")
        self.assertEqual(exit_.json()["currency"], "INR")

    def test_malformed_scan_is_failed_result(self):
        response = self.client.post("/api/v1/scans", json={"raw_payload": "A|B|C", "lot_id": "L1"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "Failed")
        self.assertEqual(response.json()["error"], "MalformedPayload")

    def test_unknown_lot_is_failed_result(self):
        response = self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L_missing"})

        self.assertEqual(response.json()["status"], "Failed")
        self.assertEqual(response.json()["error"], "UnknownLot")

    def test_manual_entry(self):
        response = self.client.post("/api/v1/entries", json={"vehicle_number": "ka01ab1234", "lot_id": "L1"})

        self.assertEqual(response.json()["kind"], "entry")
        self.assertEqual(response.json()["vehicle_id"], "veh-001")

    def test_storage_unavailable_is_503(self):
        with patch.object(self.engine.transactions, "append", side_effect=Unavailable("offline")):
            response = self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L1"})

        self.assertEqual(response.status_code, 503)

    def test_transactions_newest_first(self):
        self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L1"})
        self.client.post("/api/v1/scans", json={"raw_payload": "bad", "lot_id": "L1"})

        transactions = self.client.get("/api/v1/transactions", params={"lot_id": "L1"}).json()["transactions"]
        self.assertEqual([t["status"] for t in transactions], ["Failed", "Success"])

        limited = self.client.get("/api/v1/transactions", params={"limit": 1}).json()["transactions"]
        self.assertEqual(len(limited), 1)


class TestCatalogEndpoints(unittest.TestCase):
    """Lots, vehicles, payloads, health and metrics"""

    def setUp(self):
        self.client, self.engine = make_client()

    def test_list_lots(self):
        lots = self.client.get("/api/v1/lots").json()["lots"]

        self.assertEqual(len(lots), 1)
        self.assertEqual(lots[0]["id"], "L1")
        self.assertEqual(lots[0]["open_sessions"], 0)

    def test_unknown_lot_is_404(self):
        self.assertEqual(self.client.get("/api/v1/lots/L9").status_code, 404)
        self.assertEqual(self.client.get("/api/v1/lots/L9/sessions").status_code, 404)

    def test_create_payload(self):
        response = self.client.post("/api/v1/payloads", json={"vehicle_number": "ka01ab1234", "vehicle_id": "veh-001"})
        self.assertEqual(response.json()["payload"], "KA01AB1234|veh-001")

    def test_create_payload_rejects_separator(self):
        response = self.client.post("/api/v1/payloads", json={"vehicle_number": "KA|01", "vehicle_id": "veh-001"})
        self.assertEqual(response.status_code, 400)

    def test_register_vehicle(self):
        response = self.client.post("/api/v1/vehicles", json={"id": "veh-002", "vehicle_number": "mh12de1433"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["vehicle_number"], "MH12DE1433")

        numbers = [v["vehicle_number"] for v in self.client.get("/api/v1/vehicles").json()["vehicles"]]
        self.assertIn("MH12DE1433", numbers)

        entry = self.client.post("/api/v1/entries", json={"vehicle_number": "MH12DE1433", "lot_id": "L1"})
        self.assertEqual(entry.json()["status"], "Success")

    def test_register_vehicle_rejects_separator(self):
        response = self.client.post("/api/v1/vehicles", json={"id": "a|b", "vehicle_number": "MH12DE1433"})
        self.assertEqual(response.status_code, 400)

    def test_health(self):
        health = self.client.get("/api/v1/health").json()

        self.assertEqual(health["status"], "healthy")
        self.assertEqual(health["lots"], 1)

    def test_metrics(self):
        self.client.post("/api/v1/scans", json={"raw_payload": "KA01AB1234|veh-001", "lot_id": "L1"})
        response = self.client.get("/api/v1/metrics")

        self.assertEqual(response.status_code, 200)
        self.assertIn("parking_scans_processed_total", response.text)
        self.assertIn("parking_sessions_open", response.text)


if __name__ == "__main__":
    unittest.main()
