import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, redirect, url_for
from flask_migrate import Migrate
from flask_wtf.csrf import generate_csrf

from database import db

load_dotenv()

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL", "sqlite:///taskflow.db"
)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-taskflow-secret")
app.config["TASKFLOW_LOG_LEVEL"] = os.environ.get("TASKFLOW_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, app.config["TASKFLOW_LOG_LEVEL"], logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

db.init_app(app)

# Models import should be after initializing db
from models.category import Category
from models.checklist import ActionItem, ChecklistItem
from models.priority import Priority
from models.project import Project
from models.status import Status
from models.subtask import Subtask
from models.tag import Tag
from models.task import Task
from models.user import User

from routes.admin import admin_bp
from routes.dashboard import dashboard_bp
from routes.tasks import tasks_bp
from routes.taxonomies import taxonomies_bp
from services.ordered_collection import ENTITY_KINDS, OrderedCollectionManager
from services.store import CHANGE_FEED_EXTENSION, ChangeFeed

app.extensions[CHANGE_FEED_EXTENSION] = ChangeFeed()

# Create flask command lines to update the db based on the model
# Useage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Update comments"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)
app.register_blueprint(admin_bp)
app.register_blueprint(taxonomies_bp)
app.register_blueprint(tasks_bp)
app.register_blueprint(dashboard_bp)

DEFAULT_TAXONOMIES = {
    "priorities": [
        {"name": "Low", "color": "#22c55e"},
        {"name": "Medium", "color": "#f59e0b"},
        {"name": "High", "color": "#ef4444"},
    ],
    "statuses": [
        {"name": "To Do", "color": "#808080"},
        {"name": "In Progress", "color": "#3b82f6"},
        {"name": "Done", "color": "#22c55e", "is_completion_status": True},
    ],
}


@app.cli.command("seed-defaults")
def seed_defaults():
    """Create the default priorities and statuses when they are missing."""
    for collection, entries in DEFAULT_TAXONOMIES.items():
        with OrderedCollectionManager(ENTITY_KINDS[collection]) as manager:
            known = {item["name"].casefold() for item in manager.list()}
            for entry in entries:
                if entry["name"].casefold() in known:
                    continue
                manager.add(entry)
                logging.info("Seeded %s %s", collection, entry["name"])


# Home
# ------------------------------
@app.route("/")
def home():
    return redirect(url_for("tasks.list_tasks"))


@app.route("/csrf-token")
def csrf_token():
    """Hand out a token for clients that post JSON."""
    return jsonify({"csrf_token": generate_csrf()})


# Application Execution
# ------------------------------
if __name__ == "__main__":
    app.run(debug=True)
