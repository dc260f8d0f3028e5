import os
import sys
import shutil
import sqlite3
import datetime
import tempfile
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import LiftAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "test_workout.db")
        self.yaml_path = os.path.join(self.tmpdir, "test_settings.yaml")
        self.api = LiftAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _user(self, name: str) -> dict:
        resp = self.client.post("/users", params={"username": name})
        self.assertEqual(resp.status_code, 200)
        return {"X-User-Id": str(resp.json()["id"])}

    def _exercise(self, name: str, category: str) -> int:
        resp = self.client.post("/exercises", params={"name": name, "category": category})
        self.assertEqual(resp.status_code, 200)
        return resp.json()["id"]

    def _start(self, headers: dict, minutes_ago: int = 0) -> int:
        start = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(
            minutes=minutes_ago
        )
        resp = self.client.post(
            "/workouts", params={"start_time": start.isoformat()}, headers=headers
        )
        self.assertEqual(resp.status_code, 200)
        return resp.json()["id"]

    def _set(self, wid: int, headers: dict, exercise_id: int, weight: float, reps: int):
        return self.client.post(
            f"/workouts/{wid}/sets",
            params={"exercise_id": exercise_id, "weight_kg": weight, "reps": reps},
            headers=headers,
        )

    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_full_workflow(self) -> None:
        alice = self._user("alice")
        bench = self._exercise("Bench Press", "Chest")
        resp = self.client.get("/exercises")
        self.assertEqual(
            resp.json(),
            [{"id": bench, "name": "Bench Press", "category": "Chest", "equipment": None}],
        )

        start = (
            datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=40)
        ).isoformat()
        resp = self.client.post(
            "/workouts", params={"name": "Push", "start_time": start}, headers=alice
        )
        self.assertEqual(resp.status_code, 200)
        workout = resp.json()
        self.assertEqual(workout["id"], 1)
        self.assertEqual(workout["user_id"], 1)
        self.assertEqual(workout["name"], "Push")
        self.assertIsNone(workout["end_time"])

        resp = self.client.get("/workouts/active", headers=alice)
        self.assertEqual(resp.json()["id"], 1)

        first = self._set(1, alice, bench, 100.0, 5).json()
        self.assertTrue(first["is_new_1rm"])
        self.assertFalse(first["is_volume_pr"])
        self.assertEqual(first["set"]["reps"], 5)

        second = self._set(1, alice, bench, 100.0, 8).json()
        self.assertFalse(second["is_new_1rm"])
        self.assertTrue(second["is_volume_pr"])

        third = self._set(1, alice, bench, 90.0, 6).json()
        self.assertFalse(third["is_new_1rm"])
        self.assertFalse(third["is_volume_pr"])

        resp = self.client.post("/workouts/1/finish", headers=alice)
        self.assertEqual(resp.status_code, 200)
        result = resp.json()
        self.assertEqual(result["duration_minutes"], 40)
        self.assertEqual(result["total_volume_kg"], 1840.0)
        self.assertEqual(result["badges"], [])
        self.assertGreater(result["calories_burned"], 0)

        resp = self.client.post("/workouts/1/finish", headers=alice)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self._set(1, alice, bench, 50.0, 5).status_code, 409)
        self.assertEqual(self.client.get("/workouts/active", headers=alice).status_code, 404)

        today = datetime.datetime.now(datetime.timezone.utc).date().isoformat()
        profile = self.client.get("/profile/1").json()
        self.assertEqual(profile["username"], "alice")
        self.assertEqual(profile["total_workouts"], 1)
        self.assertEqual(profile["total_volume_kg"], 1840.0)
        self.assertEqual(profile["activity_log"], [{"date": today, "volume_kg": 1840.0}])
        self.assertEqual(profile["current_streak"], 1)
        self.assertEqual(profile["max_streak"], 1)

        self.assertEqual(
            self.client.get("/profile/1/streak").json(), {"current": 1, "max": 1}
        )
        history = self.client.get("/profile/1/history").json()
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["set_count"], 3)
        self.assertEqual(history[0]["calories_burned"], result["calories_burned"])

    def test_caller_identity_required(self) -> None:
        self.assertEqual(self.client.post("/workouts").status_code, 401)
        resp = self.client.post("/workouts", headers={"X-User-Id": "99"})
        self.assertEqual(resp.status_code, 404)

    def test_foreign_workout_forbidden(self) -> None:
        alice = self._user("alice")
        bob = self._user("bob")
        bench = self._exercise("Bench Press", "Chest")
        wid = self._start(alice)
        self.assertEqual(self._set(wid, bob, bench, 60.0, 5).status_code, 403)
        resp = self.client.post(f"/workouts/{wid}/finish", headers=bob)
        self.assertEqual(resp.status_code, 403)

    def test_missing_rows(self) -> None:
        alice = self._user("alice")
        bench = self._exercise("Bench Press", "Chest")
        wid = self._start(alice)
        self.assertEqual(self._set(wid, alice, 99, 60.0, 5).status_code, 404)
        self.assertEqual(self._set(99, alice, bench, 60.0, 5).status_code, 404)
        resp = self.client.post("/workouts/99/finish", headers=alice)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.client.get("/profile/42").status_code, 404)

    def test_invalid_input(self) -> None:
        alice = self._user("alice")
        bench = self._exercise("Bench Press", "Chest")
        wid = self._start(alice)
        self.assertEqual(self._set(wid, alice, bench, 60.0, 0).status_code, 400)
        self.assertEqual(self._set(wid, alice, bench, -5.0, 5).status_code, 400)
        resp = self.client.post(
            f"/workouts/{wid}/sets",
            params={"exercise_id": bench, "weight_kg": 60, "reps": 5, "rpe": 11},
            headers=alice,
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/workouts", params={"start_time": "yesterday"}, headers=alice
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            self.client.post("/users", params={"username": "alice"}).status_code, 400
        )
        resp = self.client.post(
            "/exercises", params={"name": "Bench Press", "category": "Chest"}
        )
        self.assertEqual(resp.status_code, 400)

    def test_badges_and_trophies(self) -> None:
        alice = self._user("alice")
        bench = self._exercise("Bench Press", "Chest")
        wid = self._start(alice, minutes_ago=95)
        for _ in range(20):
            self.assertEqual(self._set(wid, alice, bench, 100.0, 5).status_code, 200)
        result = self.client.post(f"/workouts/{wid}/finish", headers=alice).json()
        self.assertEqual(result["total_volume_kg"], 10000.0)
        self.assertEqual(
            result["badges"], ["Titan Volume", "Marathoner", "Volume Warrior"]
        )

        badges = self.client.get("/profile/1/badges").json()
        self.assertEqual(
            sorted(b["badge_name"] for b in badges),
            ["Marathoner", "Titan Volume", "Volume Warrior"],
        )
        self.assertTrue(all(b["workout_id"] == wid for b in badges))
        trophies = self.client.get("/profile/1/trophies").json()
        self.assertEqual(len(trophies), 3)
        self.assertTrue(all(t["count"] == 1 for t in trophies))

    def test_leaderboard(self) -> None:
        alice = self._user("alice")
        bob = self._user("bob")
        self._user("carol")
        bench = self._exercise("Bench Press", "Chest")
        squat = self._exercise("Back Squat", "Legs")
        self._set(self._start(alice), alice, bench, 100.0, 10)
        self._set(self._start(bob), bob, squat, 150.0, 10)

        board = self.client.get("/leaderboard").json()
        self.assertEqual([e["username"] for e in board], ["bob", "alice"])
        self.assertEqual([e["rank"] for e in board], [1, 2])
        self.assertEqual(board[0]["total_volume_kg"], 1500.0)
        self.assertEqual(board[0]["period"], "all")

        board = self.client.get("/leaderboard", params={"category": "chest"}).json()
        self.assertEqual(len(board), 1)
        self.assertEqual(board[0]["username"], "alice")
        self.assertEqual(board[0]["category"], "chest")

        board = self.client.get("/leaderboard", params={"period": "weekly"}).json()
        self.assertEqual(len(board), 2)
        board = self.client.get("/leaderboard", params={"period": "fortnight"}).json()
        self.assertEqual(board[0]["period"], "all")

    def test_physical_stats(self) -> None:
        alice = self._user("alice")
        today = datetime.datetime.now(datetime.timezone.utc).date()
        dob = (today - datetime.timedelta(days=365 * 30 + 100)).isoformat()
        resp = self.client.put(
            "/profile/stats",
            params={
                "height_cm": 175,
                "weight_kg": 70,
                "sex": "male",
                "date_of_birth": dob,
                "activity_level": "moderate",
            },
            headers=alice,
        )
        self.assertEqual(resp.status_code, 200)
        stats = resp.json()
        self.assertEqual(stats["bmr"], 1648)
        self.assertEqual(stats["tdee"], 2554)

        resp = self.client.put("/profile/stats", params={"weight_kg": 72}, headers=alice)
        self.assertEqual(resp.json()["height_cm"], 175.0)
        self.assertEqual(resp.json()["current_weight_kg"], 72.0)
        weights = self.client.get("/profile/1/weight").json()
        self.assertEqual([w["weight_kg"] for w in weights], [70.0, 72.0])

        resp = self.client.put("/profile/stats", params={"height_cm": -1}, headers=alice)
        self.assertEqual(resp.status_code, 400)
        resp = self.client.put(
            "/profile/stats", params={"date_of_birth": "01/02/1990"}, headers=alice
        )
        self.assertEqual(resp.status_code, 400)

    def test_physical_stats_incomplete(self) -> None:
        self._user("alice")
        stats = self.client.get("/profile/1/stats").json()
        self.assertIsNone(stats["bmr"])
        self.assertIsNone(stats["tdee"])

    def test_nutrition_accumulates(self) -> None:
        alice = self._user("alice")
        self.assertIsNone(self.client.get("/profile/nutrition", headers=alice).json())
        resp = self.client.post(
            "/profile/nutrition",
            params={"calories_in": 500, "protein_g": 30},
            headers=alice,
        )
        self.assertEqual(resp.json()["calories_in"], 500)
        resp = self.client.post(
            "/profile/nutrition",
            params={"calories_in": 700, "protein_g": 20, "carbs_g": 50},
            headers=alice,
        )
        day = resp.json()
        self.assertEqual(day["calories_in"], 1200)
        self.assertEqual(day["protein_g"], 50)
        self.assertEqual(day["carbs_g"], 50)
        self.assertEqual(self.client.get("/profile/nutrition", headers=alice).json(), day)
        resp = self.client.post(
            "/profile/nutrition", params={"calories_in": -10}, headers=alice
        )
        self.assertEqual(resp.status_code, 400)

    def test_storage_failure_is_500(self) -> None:
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        self.api.statistics.leaderboard = broken
        resp = self.client.get("/leaderboard")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"detail": "storage failure"})


if __name__ == "__main__":
    unittest.main()
