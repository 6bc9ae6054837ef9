from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, jsonify, request

from billsplit.api.validators import (
    ApiValidationError,
    SessionPayload,
    parse_drop_target,
    parse_quantity,
    parse_session,
    require_item,
    require_person,
)
from billsplit.domain.assignment_store import (
    Applied,
    AssignmentInvariantError,
    DropIntent,
    Outcome,
    QuantityChoiceRequired,
    SplitState,
    check_invariants,
    confirm_quantity_assignment,
    get_assignment_info,
    handle_drop,
    remaining_quantity,
    unassign_item,
)
from billsplit.domain.settlement import summarize

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _json_error(message: str, *, status: int = 400, code: str = "bad_request"):
    return jsonify({"error": {"code": code, "message": message}}), status


def _amount(value: Decimal) -> str:
    return f"{value:.2f}"


def _totals(session: SessionPayload, state: SplitState) -> Dict[str, str]:
    summary = summarize(state, session.people, session.items)
    return {str(pid): _amount(total) for pid, total in summary.totals_by_person_id.items()}


def _outcome_response(session: SessionPayload, outcome: Outcome):
    """
    Rejections are normal answers (HTTP 200): the client keeps the state we
    echo back and decides whether to show anything.
    """
    body: Dict[str, Any]
    if isinstance(outcome, Applied):
        state = outcome.state
        try:
            check_invariants(state, session.items)
        except AssignmentInvariantError as e:
            logger.error("Split state invariant broken: %s", e)
            return _json_error("Internal error: inconsistent split state.", status=500, code="internal_mismatch")
        body = {"status": "applied"}
    elif isinstance(outcome, QuantityChoiceRequired):
        state = session.state
        body = {
            "status": "quantity_required",
            "item_id": outcome.item.id,
            "person_id": outcome.person.id,
            "max_quantity": outcome.max_quantity,
        }
    else:
        state = session.state
        body = {"status": "rejected", "reason": outcome.reason.value, "message": outcome.message}

    body["state"] = state.to_dict()
    body["totals_by_person_id"] = _totals(session, state)
    return jsonify(body), 200


def _load_session():
    data = request.get_json(silent=True)
    if data is None:
        raise ApiValidationError("Request body must be JSON.")
    return data, parse_session(data)


@api_bp.get("/health")
def health():
    return jsonify({"status": "ok"}), 200


@api_bp.post("/drop")
def drop_endpoint():
    """
    JSON body:
      - items, people, state (optional)
      - intent: {item_id, target_id?, target?: "add_person", source_id?}
    """
    try:
        data, session = _load_session()
        raw_intent = data.get("intent")
        if not isinstance(raw_intent, dict):
            raise ApiValidationError("'intent' must be an object.")

        item = require_item(session, raw_intent.get("item_id"))
        target = parse_drop_target(session, raw_intent)
        source = None
        if raw_intent.get("source_id") is not None:
            source = require_person(session, raw_intent["source_id"], field="source_id")
    except ApiValidationError as e:
        logger.info("Rejected /drop payload: %s", e)
        return _json_error(str(e), status=400)

    outcome = handle_drop(session.state, DropIntent(dragged_item=item, target_person=target, source_person=source))
    return _outcome_response(session, outcome)


@api_bp.post("/quantity")
def quantity_endpoint():
    """Confirm the quantity prompt: {items, people, state, item_id, person_id, quantity}."""
    try:
        data, session = _load_session()
        item = require_item(session, data.get("item_id"))
        person = require_person(session, data.get("person_id"))
        quantity = parse_quantity(data.get("quantity"))
    except ApiValidationError as e:
        logger.info("Rejected /quantity payload: %s", e)
        return _json_error(str(e), status=400)

    outcome = confirm_quantity_assignment(session.state, item, person, quantity)
    return _outcome_response(session, outcome)


@api_bp.post("/unassign")
def unassign_endpoint():
    try:
        data, session = _load_session()
        item = require_item(session, data.get("item_id"))
        person = require_person(session, data.get("person_id"))
    except ApiValidationError as e:
        logger.info("Rejected /unassign payload: %s", e)
        return _json_error(str(e), status=400)

    return _outcome_response(session, Applied(unassign_item(session.state, person, item)))


@api_bp.post("/settle")
def settle_endpoint():
    """
    Response:
      - totals_by_person_id: {person_id: "12.34"}
      - items: [{id, assigned_to, is_shared, remaining_quantity}]
      - bill_total / assigned_total / unassigned_total
    """
    try:
        _data, session = _load_session()
    except ApiValidationError as e:
        logger.info("Rejected /settle payload: %s", e)
        return _json_error(str(e), status=400)

    summary = summarize(session.state, session.people, session.items)
    items = []
    for item in session.items:
        info = get_assignment_info(session.state, item.id)
        items.append(
            {
                "id": item.id,
                "assigned_to": list(info.people),
                "is_shared": info.is_shared,
                "remaining_quantity": (
                    remaining_quantity(session.state, item) if item.is_multi_unit else int(not info.is_assigned)
                ),
            }
        )

    return jsonify(
        {
            "totals_by_person_id": {str(pid): _amount(t) for pid, t in summary.totals_by_person_id.items()},
            "bill_total": _amount(summary.bill_total),
            "assigned_total": _amount(summary.assigned_total),
            "unassigned_total": _amount(summary.unassigned_total),
            "items": items,
        }
    ), 200
