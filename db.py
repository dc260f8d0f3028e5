import sqlite3
import datetime
import logging
from contextlib import contextmanager
from typing import List, Tuple, Optional

from algorithms import LeaderboardFilter

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    """Raised when a referenced row does not exist."""


class WorkoutFinishedError(ValueError):
    """Raised when finishing a workout that already has an end time."""


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Return ``value`` in UTC; naive values count as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def to_timestamp(value: datetime.datetime) -> str:
    return as_utc(value).isoformat(timespec="seconds")


def parse_timestamp(ts: Optional[str]) -> Optional[datetime.datetime]:
    if ts is None:
        return None
    return as_utc(datetime.datetime.fromisoformat(ts))


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    sex TEXT,
                    date_of_birth TEXT,
                    height_cm REAL,
                    current_weight_kg REAL,
                    activity_level TEXT,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "username",
                "sex",
                "date_of_birth",
                "height_cm",
                "current_weight_kg",
                "activity_level",
                "created_at",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT NOT NULL,
                    equipment TEXT
                );""",
            ["id", "name", "category", "equipment"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    name TEXT,
                    start_time TEXT,
                    end_time TEXT,
                    calories_burned INTEGER,
                    template_id INTEGER,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "name",
                "start_time",
                "end_time",
                "calories_burned",
                "template_id",
                "created_at",
            ],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    weight_kg REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    rpe REAL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            ["id", "workout_id", "exercise_id", "weight_kg", "reps", "rpe", "created_at"],
        ),
        "weight_logs": (
            """CREATE TABLE weight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    weight_kg REAL NOT NULL,
                    logged_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "weight_kg", "logged_at"],
        ),
        "nutrition_logs": (
            """CREATE TABLE nutrition_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    log_date TEXT NOT NULL,
                    calories_in INTEGER NOT NULL,
                    protein_g INTEGER,
                    carbs_g INTEGER,
                    fats_g INTEGER,
                    UNIQUE(user_id, log_date),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "log_date", "calories_in", "protein_g", "carbs_g", "fats_g"],
        ),
        "user_badges": (
            """CREATE TABLE user_badges (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    workout_id INTEGER NOT NULL,
                    badge_name TEXT NOT NULL,
                    earned_at TEXT NOT NULL,
                    UNIQUE(user_id, badge_name, workout_id),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "workout_id", "badge_name", "earned_at"],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_sets_exercise ON sets(exercise_id);",
        "CREATE INDEX IF NOT EXISTS idx_sets_workout ON sets(workout_id);",
        "CREATE INDEX IF NOT EXISTS idx_workouts_user ON workouts(user_id);",
    ]

    def __init__(self, db_path: str = "workout.db", timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_schema()

    def _connect(self, **kwargs) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, **kwargs)
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @contextmanager
    def _connection(self):
        connection = self._connect()
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    @contextmanager
    def transaction(self):
        """Yield a connection holding the write lock until commit.

        Any exception rolls back every statement issued on the connection.
        """
        conn = self._connect(isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE;")
            yield conn
            conn.execute("COMMIT;")
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                cursor.execute(sql)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s", table)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods.

    Passing ``conn`` runs the statement inside an open ``transaction()``.
    """

    def execute(
        self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None
    ) -> int:
        if conn is not None:
            return conn.execute(query, params).lastrowid
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(
        self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None
    ) -> List[Tuple]:
        if conn is not None:
            return conn.execute(query, params).fetchall()
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class UserRepository(BaseRepository):
    """Repository for users and their physical profile."""

    def create(self, username: str, created_at: Optional[datetime.datetime] = None) -> int:
        if not username.strip():
            raise ValueError("username required")
        rows = self.fetch_all("SELECT id FROM users WHERE username = ?;", (username,))
        if rows:
            raise ValueError("username already exists")
        try:
            return self.execute(
                "INSERT INTO users (username, created_at) VALUES (?, ?);",
                (username, to_timestamp(created_at or utc_now())),
            )
        except sqlite3.IntegrityError:
            # lost a race with a concurrent create of the same name
            raise ValueError("username already exists")

    def fetch_detail(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> dict:
        rows = self.fetch_all(
            "SELECT id, username, sex, date_of_birth, height_cm, current_weight_kg, "
            "activity_level, created_at FROM users WHERE id = ?;",
            (user_id,),
            conn,
        )
        if not rows:
            raise NotFoundError("user not found")
        uid, username, sex, dob, height, weight, activity, created = rows[0]
        return {
            "id": uid,
            "username": username,
            "sex": sex,
            "date_of_birth": dob,
            "height_cm": height,
            "current_weight_kg": weight,
            "activity_level": activity,
            "created_at": created,
        }

    def exists(self, user_id: int) -> bool:
        return bool(self.fetch_all("SELECT 1 FROM users WHERE id = ?;", (user_id,)))

    def update_physical(
        self,
        user_id: int,
        conn: sqlite3.Connection,
        height_cm: Optional[float] = None,
        weight_kg: Optional[float] = None,
        sex: Optional[str] = None,
        date_of_birth: Optional[str] = None,
        activity_level: Optional[str] = None,
    ) -> None:
        """Overwrite only the supplied fields."""
        self.execute(
            "UPDATE users SET "
            "height_cm = COALESCE(?, height_cm), "
            "current_weight_kg = COALESCE(?, current_weight_kg), "
            "sex = COALESCE(?, sex), "
            "date_of_birth = COALESCE(?, date_of_birth), "
            "activity_level = COALESCE(?, activity_level) "
            "WHERE id = ?;",
            (height_cm, weight_kg, sex, date_of_birth, activity_level, user_id),
            conn,
        )

    def current_weight(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[float]:
        rows = self.fetch_all(
            "SELECT current_weight_kg FROM users WHERE id = ?;", (user_id,), conn
        )
        if not rows:
            raise NotFoundError("user not found")
        return float(rows[0][0]) if rows[0][0] is not None else None


class WeightLogRepository(BaseRepository):
    """Append-only body weight history."""

    def log(
        self,
        user_id: int,
        weight_kg: float,
        logged_at: datetime.datetime,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        if weight_kg <= 0:
            raise ValueError("weight must be positive")
        return self.execute(
            "INSERT INTO weight_logs (user_id, weight_kg, logged_at) VALUES (?, ?, ?);",
            (user_id, weight_kg, to_timestamp(logged_at)),
            conn,
        )

    def fetch_history(self, user_id: int) -> list[tuple[str, float]]:
        rows = self.fetch_all(
            "SELECT logged_at, weight_kg FROM weight_logs WHERE user_id = ? "
            "ORDER BY logged_at, id;",
            (user_id,),
        )
        return [(r[0], float(r[1])) for r in rows]


class NutritionRepository(BaseRepository):
    """Daily nutrition totals; repeated logs on one day accumulate."""

    def log(
        self,
        user_id: int,
        log_date: str,
        calories_in: int,
        protein_g: Optional[int] = None,
        carbs_g: Optional[int] = None,
        fats_g: Optional[int] = None,
    ) -> dict:
        if calories_in < 0:
            raise ValueError("calories must be non-negative")
        self.execute(
            "INSERT INTO nutrition_logs (user_id, log_date, calories_in, protein_g, carbs_g, fats_g) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, log_date) DO UPDATE SET "
            "calories_in = nutrition_logs.calories_in + excluded.calories_in, "
            "protein_g = COALESCE(nutrition_logs.protein_g, 0) + COALESCE(excluded.protein_g, 0), "
            "carbs_g = COALESCE(nutrition_logs.carbs_g, 0) + COALESCE(excluded.carbs_g, 0), "
            "fats_g = COALESCE(nutrition_logs.fats_g, 0) + COALESCE(excluded.fats_g, 0);",
            (user_id, log_date, calories_in, protein_g, carbs_g, fats_g),
        )
        return self.fetch_for_date(user_id, log_date)

    def fetch_for_date(self, user_id: int, log_date: str) -> Optional[dict]:
        rows = self.fetch_all(
            "SELECT id, log_date, calories_in, protein_g, carbs_g, fats_g "
            "FROM nutrition_logs WHERE user_id = ? AND log_date = ?;",
            (user_id, log_date),
        )
        if not rows:
            return None
        nid, day, cals, protein, carbs, fats = rows[0]
        return {
            "id": nid,
            "log_date": day,
            "calories_in": cals,
            "protein_g": protein,
            "carbs_g": carbs,
            "fats_g": fats,
        }


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    def add(self, name: str, category: str, equipment: Optional[str] = None) -> int:
        if not name.strip() or not category.strip():
            raise ValueError("name and category required")
        rows = self.fetch_all("SELECT id FROM exercises WHERE name = ?;", (name,))
        if rows:
            raise ValueError("exercise already exists")
        return self.execute(
            "INSERT INTO exercises (name, category, equipment) VALUES (?, ?, ?);",
            (name, category, equipment),
        )

    def fetch_all_exercises(self) -> list[tuple[int, str, str, Optional[str]]]:
        return self.fetch_all(
            "SELECT id, name, category, equipment FROM exercises ORDER BY name;"
        )

    def exists(self, exercise_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        return bool(
            self.fetch_all("SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,), conn)
        )


class WorkoutRepository(BaseRepository):
    """Repository for workout sessions."""

    _COLUMNS = "id, user_id, name, start_time, end_time, calories_burned, template_id, created_at"

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        wid, uid, name, start, end, cals, template_id, created = row
        return {
            "id": wid,
            "user_id": uid,
            "name": name,
            "start_time": start,
            "end_time": end,
            "calories_burned": cals,
            "template_id": template_id,
            "created_at": created,
        }

    def create(
        self,
        user_id: int,
        name: Optional[str] = None,
        start_time: Optional[datetime.datetime] = None,
        template_id: Optional[int] = None,
        created_at: Optional[datetime.datetime] = None,
    ) -> int:
        created = created_at or utc_now()
        start = start_time or created
        return self.execute(
            "INSERT INTO workouts (user_id, name, start_time, template_id, created_at) "
            "VALUES (?, ?, ?, ?, ?);",
            (user_id, name, to_timestamp(start), template_id, to_timestamp(created)),
        )

    def fetch_detail(self, workout_id: int, conn: Optional[sqlite3.Connection] = None) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;", (workout_id,), conn
        )
        if not rows:
            raise NotFoundError("workout not found")
        return self._row_to_dict(rows[0])

    def fetch_active(self, user_id: int) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts "
            "WHERE user_id = ? AND end_time IS NULL "
            "ORDER BY start_time DESC, id DESC LIMIT 1;",
            (user_id,),
        )
        return self._row_to_dict(rows[0]) if rows else None

    def finish(
        self,
        workout_id: int,
        end_time: datetime.datetime,
        calories_burned: int,
        conn: sqlite3.Connection,
    ) -> None:
        self.execute(
            "UPDATE workouts SET end_time = ?, calories_burned = ? WHERE id = ?;",
            (to_timestamp(end_time), calories_burned, workout_id),
            conn,
        )

    def count_finished(self, user_id: int) -> int:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM workouts WHERE user_id = ? AND end_time IS NOT NULL;",
            (user_id,),
        )
        return int(rows[0][0])

    def fetch_history(self, user_id: int, limit: int = 20) -> list[dict]:
        """Finished workouts, most recent first, with volume and set count."""
        rows = self.fetch_all(
            "SELECT w.id, w.name, w.start_time, w.end_time, w.calories_burned, "
            "COALESCE((SELECT SUM(s.weight_kg * s.reps) FROM sets s WHERE s.workout_id = w.id), 0.0), "
            "(SELECT COUNT(*) FROM sets s WHERE s.workout_id = w.id) "
            "FROM workouts w WHERE w.user_id = ? AND w.end_time IS NOT NULL "
            "ORDER BY w.start_time DESC, w.id DESC LIMIT ?;",
            (user_id, limit),
        )
        return [
            {
                "id": wid,
                "name": name,
                "start_time": start,
                "end_time": end,
                "calories_burned": cals,
                "total_volume_kg": float(vol),
                "set_count": int(count),
            }
            for wid, name, start, end, cals, vol, count in rows
        ]


class SetRepository(BaseRepository):
    """Repository for logged sets."""

    def add(
        self,
        workout_id: int,
        exercise_id: int,
        weight_kg: float,
        reps: int,
        rpe: Optional[float] = None,
        created_at: Optional[datetime.datetime] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> dict:
        if reps <= 0:
            raise ValueError("reps must be positive")
        if weight_kg < 0:
            raise ValueError("weight must be non-negative")
        if rpe is not None and (rpe < 0 or rpe > 10):
            raise ValueError("rpe must be between 0 and 10")
        created = to_timestamp(created_at or utc_now())
        sid = self.execute(
            "INSERT INTO sets (workout_id, exercise_id, weight_kg, reps, rpe, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (workout_id, exercise_id, weight_kg, reps, rpe, created),
            conn,
        )
        return {
            "id": sid,
            "workout_id": workout_id,
            "exercise_id": exercise_id,
            "weight_kg": weight_kg,
            "reps": reps,
            "rpe": rpe,
            "created_at": created,
        }

    def fetch_history(
        self, user_id: int, exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> list[tuple[float, int]]:
        """Return ``(weight_kg, reps)`` for every set a user logged on an exercise."""
        rows = self.fetch_all(
            "SELECT s.weight_kg, s.reps FROM sets s "
            "JOIN workouts w ON s.workout_id = w.id "
            "WHERE s.exercise_id = ? AND w.user_id = ?;",
            (exercise_id, user_id),
            conn,
        )
        return [(float(w), int(r)) for w, r in rows]

    def fetch_for_workout(
        self, workout_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> list[tuple[int, float]]:
        """Return ``(reps, weight_kg)`` pairs for a workout."""
        rows = self.fetch_all(
            "SELECT reps, weight_kg FROM sets WHERE workout_id = ? ORDER BY id;",
            (workout_id,),
            conn,
        )
        return [(int(r), float(w)) for r, w in rows]

    def daily_volume(self, user_id: int, since: datetime.datetime) -> list[tuple[str, float]]:
        """Per-day volume for days with at least one set since ``since``."""
        rows = self.fetch_all(
            "SELECT substr(s.created_at, 1, 10) AS day, SUM(s.weight_kg * s.reps) "
            "FROM sets s JOIN workouts w ON s.workout_id = w.id "
            "WHERE w.user_id = ? AND s.created_at >= ? "
            "GROUP BY day ORDER BY day;",
            (user_id, to_timestamp(since)),
        )
        return [(day, float(vol or 0.0)) for day, vol in rows]

    def total_volume(self, user_id: int) -> float:
        rows = self.fetch_all(
            "SELECT COALESCE(SUM(s.weight_kg * s.reps), 0.0) FROM sets s "
            "JOIN workouts w ON s.workout_id = w.id WHERE w.user_id = ?;",
            (user_id,),
        )
        return float(rows[0][0])

    def volume_by_user(
        self, filters: LeaderboardFilter, now: datetime.datetime
    ) -> list[tuple[int, str, float]]:
        """Aggregate volume per user for sets matching ``filters``."""
        query = (
            "SELECT u.id, u.username, SUM(s.weight_kg * s.reps) AS total "
            "FROM sets s "
            "JOIN workouts w ON s.workout_id = w.id "
            "JOIN users u ON w.user_id = u.id "
            "JOIN exercises e ON s.exercise_id = e.id"
        )
        params: list[str] = []
        where_clauses: list[str] = []
        cutoff = filters.cutoff(now)
        if cutoff is not None:
            where_clauses.append("s.created_at >= ?")
            params.append(to_timestamp(cutoff))
        if filters.category:
            where_clauses.append("LOWER(e.category) = LOWER(?)")
            params.append(filters.category)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " GROUP BY u.id, u.username HAVING total > 0 ORDER BY u.id;"
        rows = self.fetch_all(query, tuple(params))
        return [(int(uid), name, float(total)) for uid, name, total in rows]


class BadgeRepository(BaseRepository):
    """Repository for badge awards."""

    def award(
        self,
        user_id: int,
        workout_id: int,
        badge_name: str,
        earned_at: datetime.datetime,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Insert an award; return ``False`` when it already existed."""
        if conn is not None:
            cur = conn.execute(
                "INSERT OR IGNORE INTO user_badges (user_id, workout_id, badge_name, earned_at) "
                "VALUES (?, ?, ?, ?);",
                (user_id, workout_id, badge_name, to_timestamp(earned_at)),
            )
            return cur.rowcount > 0
        with self._connection() as connection:
            cur = connection.execute(
                "INSERT OR IGNORE INTO user_badges (user_id, workout_id, badge_name, earned_at) "
                "VALUES (?, ?, ?, ?);",
                (user_id, workout_id, badge_name, to_timestamp(earned_at)),
            )
            return cur.rowcount > 0

    def fetch_for_user(self, user_id: int) -> list[dict]:
        rows = self.fetch_all(
            "SELECT id, user_id, workout_id, badge_name, earned_at FROM user_badges "
            "WHERE user_id = ? ORDER BY earned_at DESC, id DESC;",
            (user_id,),
        )
        return [
            {
                "id": bid,
                "user_id": uid,
                "workout_id": wid,
                "badge_name": name,
                "earned_at": earned,
            }
            for bid, uid, wid, name, earned in rows
        ]

    def fetch_for_workout(self, workout_id: int) -> list[str]:
        rows = self.fetch_all(
            "SELECT badge_name FROM user_badges WHERE workout_id = ? ORDER BY id;",
            (workout_id,),
        )
        return [r[0] for r in rows]

    def grouped(self, user_id: int) -> list[dict]:
        """Awards grouped by badge name with count and latest earn time."""
        rows = self.fetch_all(
            "SELECT badge_name, COUNT(*), MAX(earned_at) FROM user_badges "
            "WHERE user_id = ? GROUP BY badge_name ORDER BY MAX(earned_at) DESC, badge_name;",
            (user_id,),
        )
        return [
            {"name": name, "count": int(count), "last_earned_at": last}
            for name, count, last in rows
        ]
