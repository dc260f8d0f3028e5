import argparse
import datetime

from config import YamlConfig, configure_logging
from rest_api import LiftAPI


def demo_data(db_path: str, yaml_path: str) -> None:
    """Populate the database with a demo user and a finished workout if empty."""
    api = LiftAPI(db_path=db_path, yaml_path=yaml_path)
    if api.exercises.fetch_all_exercises():
        print("Database already contains data")
        return
    uid = api.users.create("demo")
    api.profiles.update_physical_stats(
        uid,
        height_cm=180.0,
        weight_kg=82.0,
        sex="male",
        date_of_birth="1992-05-01",
        activity_level="moderate",
    )
    bench = api.exercises.add("Bench Press", "Chest", "Barbell")
    squat = api.exercises.add("Back Squat", "Legs", "Barbell")
    start = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=45)
    wid = api.workouts.create(uid, "Demo session", start)
    for weight, reps in [(60.0, 10), (80.0, 8), (100.0, 5)]:
        api.statistics.log_set(wid, uid, bench, weight, reps, 8)
    for weight, reps in [(100.0, 8), (120.0, 6), (140.0, 3)]:
        api.statistics.log_set(wid, uid, squat, weight, reps, 8)
    result = api.gamification.finish_workout(wid, uid)
    print(f"Demo data inserted: {result['calories_burned']} kcal, badges {result['badges']}")


def print_leaderboard(db_path: str, yaml_path: str, period: str, category: str | None) -> None:
    api = LiftAPI(db_path=db_path, yaml_path=yaml_path)
    for entry in api.statistics.leaderboard(period, category):
        print(f"{entry['rank']:>3}  {entry['username']:<20} {entry['total_volume_kg']:>12.1f} kg")


def serve(yaml_path: str, host: str, port: int) -> None:
    import uvicorn

    api = LiftAPI(yaml_path=yaml_path)
    uvicorn.run(api.app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="TitanLift utility commands")
    parser.add_argument("--yaml", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default=None)

    board = sub.add_parser("leaderboard")
    board.add_argument("--db", default=None)
    board.add_argument("--period", choices=["weekly", "monthly", "all"], default="all")
    board.add_argument("--category", default=None)

    args = parser.parse_args()
    configure_logging(YamlConfig(args.yaml).settings().log_level)

    if args.cmd == "serve":
        serve(args.yaml, args.host, args.port)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "leaderboard":
        print_leaderboard(args.db, args.yaml, args.period, args.category)


if __name__ == "__main__":
    main()
