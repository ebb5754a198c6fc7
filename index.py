# index.py
from flask import Blueprint, jsonify
from utils.dates import utcnow

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def home():
    return jsonify(service="procurement", status="ok", time=utcnow().isoformat())
