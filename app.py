"""Local HTTP entry point: `python app.py` or `flask --app app run`."""

from src.attendance_sync.attendance_sync.main import create_app

app = create_app()


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5050, debug=app.config["DEBUG"])
