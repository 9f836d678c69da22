from __future__ import annotations

import logging
import sys
from functools import wraps
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException

from config import ParkingConfig
from errors import ParkingError
from models import ActiveSession, ClosedSession, Slot
from parking_system import ParkingService, SearchResult

api = Blueprint("api", __name__, url_prefix="/api")

ERROR_STATUS = {
    "validation_error": 400,
    "invalid_snapshot": 400,
    "vehicle_not_found": 404,
    "duplicate_vehicle": 409,
    "no_slot_available": 409,
    "invalid_slot": 409,
    "invalid_timestamp": 422,
}


# -------------------------
# 共通
# -------------------------
def service() -> ParkingService:
    return current_app.extensions["parking"]


def require_json(fn):
    @wraps(fn)
    def inner(*args, **kwargs):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise BadRequest("Request body must be a JSON object")
        return fn(body, *args, **kwargs)
    return inner


def session_json(session: ActiveSession) -> Dict[str, Any]:
    return {
        "vehicleId": session.vehicle_id,
        "category": session.category.value,
        "slot": session.slot_index,
        "checkInTime": session.check_in_time,
        "plannedHours": session.planned_hours,
        "quotedCost": str(session.quoted_cost),
    }


def live_json(result: SearchResult) -> Dict[str, Any]:
    data = session_json(result.session)
    data["elapsedSeconds"] = result.elapsed_seconds
    if result.quote is None:
        data["billedMinutes"] = data["billedHours"] = data["currentCost"] = None
    else:
        data["billedMinutes"] = result.quote.billed_minutes
        data["billedHours"] = str(result.quote.billed_hours)
        data["currentCost"] = str(result.quote.cost)
    return data


def slot_json(slot: Slot) -> Dict[str, Any]:
    return {"index": slot.index, "status": slot.status.value, "occupant": slot.occupant}


def closed_json(entry: ClosedSession) -> Dict[str, Any]:
    return {
        "vehicleId": entry.vehicle_id,
        "category": entry.category.value,
        "checkInTime": entry.check_in_time,
        "checkOutTime": entry.check_out_time,
        "billedHours": str(entry.billed_hours),
        "totalCost": str(entry.total_cost),
    }


# -------------------------
# 入庫・出庫
# -------------------------
@api.route("/checkin", methods=["POST"])
@require_json
def check_in(body):
    r = service().check_in(
        body.get("vehicleId"), body.get("category", "car"), body.get("plannedHours", 1)
    )
    return jsonify({
        "vehicleId": r.vehicle_id,
        "category": r.category.value,
        "slot": r.slot_index,
        "checkInTime": r.check_in_time,
        "quotedCost": str(r.quoted_cost),
    }), 201


@api.route("/checkout", methods=["POST"])
@require_json
def check_out(body):
    r = service().check_out(body.get("vehicleId"))
    return jsonify({
        "vehicleId": r.vehicle_id,
        "category": r.category.value,
        "slot": r.slot_index,
        "checkInTime": r.check_in_time,
        "checkOutTime": r.check_out_time,
        "billedMinutes": r.billed_minutes,
        "billedHours": str(r.billed_hours),
        "totalCost": str(r.total_cost),
    })


# -------------------------
# 検索・表示
# -------------------------
@api.route("/vehicles/<vehicle_id>", methods=["GET"])
def search(vehicle_id):
    result = service().search(vehicle_id)
    if result is None:
        return jsonify({
            "error": "vehicle_not_found",
            "message": f"No vehicle with number {vehicle_id.upper()} is currently parked",
        }), 404
    return jsonify(live_json(result))


@api.route("/vehicles/<vehicle_id>/quote", methods=["GET"])
def quote(vehicle_id):
    return jsonify({
        "vehicleId": vehicle_id.upper(),
        "currentCost": str(service().current_quote(vehicle_id)),
    })


@api.route("/slots/<category>", methods=["GET"])
def slots(category):
    stats = service().occupancy(category)
    return jsonify({
        "category": stats.category.value,
        "capacity": stats.capacity,
        "occupied": stats.occupied,
        "available": stats.available,
        "slots": [slot_json(s) for s in service().slots(category)],
    })


@api.route("/slots/<category>/<int:index>", methods=["GET"])
def slot_info(category, index):
    info = service().slot_info(category, index)
    data = slot_json(info.slot)
    data["category"] = info.category.value
    data["session"] = session_json(info.session) if info.session else None
    data["elapsedSeconds"] = info.elapsed_seconds
    return jsonify(data)


@api.route("/history", methods=["GET"])
def history():
    return jsonify([closed_json(h) for h in service().history()])


@api.route("/report", methods=["GET"])
def report():
    r = service().status_report()
    return jsonify({
        "generatedAt": r.generated_at,
        "occupiedSlots": len(r.entries),
        "vehicles": [live_json(e) for e in r.entries],
        "totalCurrentRevenue": str(r.total_current_revenue),
    })


@api.route("/analytics", methods=["GET"])
def analytics():
    a = service().analytics()
    return jsonify({
        "revenueByCategory": {c.value: str(v) for c, v in a.revenue_by_category.items()},
        "occupancyByHour": a.occupancy_by_hour,
        "peakHours": a.peak_hours,
        "totalRevenue": str(a.total_revenue),
    })


# -------------------------
# 管理
# -------------------------
@api.route("/reset", methods=["POST"])
@require_json
def reset(body):
    if body.get("confirm") is not True:
        raise BadRequest("Reset requires {\"confirm\": true}")
    service().reset()
    return jsonify({"message": "Parking system has been reset successfully"})


@api.route("/export", methods=["GET"])
def export():
    return jsonify(service().export_snapshot())


@api.route("/import", methods=["POST"])
@require_json
def import_data(body):
    summary = service().import_snapshot(body)
    return jsonify({
        "message": "Parking data imported successfully",
        "sessions": summary.sessions,
        "history": summary.history,
        "dropped": summary.dropped,
    })


# -------------------------
# エラー
# -------------------------
@api.errorhandler(ParkingError)
def handle_parking_error(exc: ParkingError):
    return jsonify({"error": exc.code, "message": str(exc)}), ERROR_STATUS.get(exc.code, 500)


@api.errorhandler(HTTPException)
def handle_http_error(exc: HTTPException):
    return jsonify({"error": exc.name, "message": exc.description}), exc.code


def create_app(
    config: Optional[ParkingConfig] = None, parking: Optional[ParkingService] = None
) -> Flask:
    app = Flask(__name__)
    if parking is None:
        parking = ParkingService.from_config(config or ParkingConfig.from_env())
    app.extensions["parking"] = parking
    app.register_blueprint(api)
    return app


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


if __name__ == "__main__":
    setup_logging()
    app = create_app()
    try:
        app.run(debug=True)
    finally:
        app.extensions["parking"].close()
