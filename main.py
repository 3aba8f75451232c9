from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from collection_engine import EngineConfig, LifecycleProcessor
from collection_engine.errors import (
    DebtAlreadyExists,
    InvalidInput,
    NotFound,
    StageTransitionRejected,
    StoreUnavailable,
)
from collection_engine.models import Debt, NegotiationChannel, PaymentMethod
from collection_engine.output import OutputBuilder
from collection_engine.stores import (
    InMemoryAgreementStore,
    InMemoryAttemptStore,
    InMemoryDebtStore,
    InMemoryDirectory,
    InMemoryTenantConfiguration,
)
from datetime import date
from decimal import Decimal, InvalidOperation
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

output = OutputBuilder()


def build_processor(config: EngineConfig | None = None) -> LifecycleProcessor:
    """Processor wired to in-memory stores, for local runs."""
    config = config or EngineConfig.from_env()
    return LifecycleProcessor(
        debts=InMemoryDebtStore(),
        attempts=InMemoryAttemptStore(),
        agreements=InMemoryAgreementStore(),
        tenants=InMemoryTenantConfiguration(config.default_commission_percentage),
        directory=InMemoryDirectory(),
        config=config,
    )


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if not data:
        raise InvalidInput("No input data provided")
    return data


def _date_arg(name: str) -> date | None:
    value = request.args.get(name)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidInput(f"{name} must be an ISO date, got: {value}") from None


def _decimal(value, name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidInput(f"{name} must be a number, got: {value}") from None


def _enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInput(f"Invalid {name}: {value}") from None


def create_app(processor: LifecycleProcessor | None = None) -> Flask:
    app = Flask(__name__)

    # Enable CORS for all routes (the dashboards call the API from the browser)
    CORS(app)

    app.config["PROCESSOR"] = processor or build_processor()
    engine: LifecycleProcessor = app.config["PROCESSOR"]

    @app.errorhandler(InvalidInput)
    def handle_invalid_input(e):
        # Validation errors from engine
        logger.error(f"Validation error: {str(e)}")
        return jsonify({"error": str(e), "status": "validation_failed"}), 400

    @app.errorhandler(NotFound)
    def handle_not_found(e):
        return jsonify({"error": str(e), "status": "not_found"}), 404

    @app.errorhandler(StageTransitionRejected)
    def handle_rejected(e):
        logger.warning(f"Transition rejected: {str(e)}")
        return jsonify({"error": str(e), "status": "rejected"}), 409

    @app.errorhandler(DebtAlreadyExists)
    def handle_duplicate(e):
        logger.warning(f"Duplicate registration: {str(e)}")
        return jsonify({"error": str(e), "status": "conflict"}), 409

    @app.errorhandler(StoreUnavailable)
    def handle_store_unavailable(e):
        logger.error(f"Store unavailable: {str(e)}")
        return jsonify({"error": "Storage temporarily unavailable, retry later", "status": "unavailable"}), 503

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        # Log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred during processing", "status": "failed"}), 500

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Debt Collection Lifecycle API",
            "version": "1.0",
            "endpoints": {
                "register_debt": "/debts [POST]",
                "case": "/debts/<id>/case [GET]",
                "quote": "/debts/<id>/quote [GET]",
                "attempts": "/debts/<id>/attempts [POST]",
                "stage": "/debts/<id>/stage [POST]",
                "agreement": "/debts/<id>/agreement [POST]",
                "payment": "/debts/<id>/payment [POST]",
                "petition": "/debts/<id>/petition [POST]",
                "cases": "/tenants/<id>/cases [GET]",
                "summary": "/tenants/<id>/summary [GET]",
                "refresh_overdue": "/tenants/<id>/refresh_overdue [POST]",
                "health": "/health [GET]"
            }
        }), 200

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy"}), 200

    @app.route("/debts", methods=["POST"])
    def register_debt():
        data = _json_body()
        try:
            debt = Debt.from_dict(data)
        except (KeyError, ValueError, InvalidOperation) as e:
            raise InvalidInput(f"Invalid debt payload: {str(e)}") from None
        engine.register_debt(debt)
        return jsonify(output.debt(debt)), 201

    @app.route("/debts/<debt_id>/case", methods=["GET"])
    def get_case(debt_id):
        case = engine.case(debt_id)
        payload = output.case(case)
        payload["updated_value"] = output.updated_value(engine.updated_value(debt_id, _date_arg("evaluation_date")))
        return jsonify(payload), 200

    @app.route("/debts/<debt_id>/quote", methods=["GET"])
    def get_quote(debt_id):
        evaluation_date = _date_arg("evaluation_date")
        updated = engine.updated_value(debt_id, evaluation_date)
        quotes = engine.quote(debt_id, evaluation_date)
        return jsonify({
            "updated_value": output.updated_value(updated),
            "options": [output.quote(q) for q in quotes],
        }), 200

    @app.route("/debts/<debt_id>/attempts", methods=["POST"])
    def log_contact(debt_id):
        data = _json_body()
        channel = _enum(NegotiationChannel, data.get("channel"), "channel")
        attempt = engine.log_contact(debt_id, channel, data.get("notes", ""), data.get("author", ""))
        return jsonify(output.attempt(attempt)), 201

    @app.route("/debts/<debt_id>/stage", methods=["POST"])
    def change_stage(debt_id):
        data = _json_body()
        actions = {
            "advance": engine.advance,
            "retreat": engine.retreat,
            "refuse": engine.declare_refusal,
            "request_negotiation": engine.request_negotiation,
            "route": engine.route_to_collection,
        }
        action = data.get("action")
        if action not in actions:
            raise InvalidInput(f"Invalid action: {action}. Must be one of {sorted(actions)}")
        debt = actions[action](debt_id)
        return jsonify(output.debt(debt)), 200

    @app.route("/debts/<debt_id>/agreement", methods=["POST"])
    def create_agreement(debt_id):
        data = _json_body()
        first_due = data.get("first_due_date")
        try:
            first_due_date = date.fromisoformat(first_due) if first_due else None
        except ValueError:
            raise InvalidInput(f"first_due_date must be an ISO date, got: {first_due}") from None

        agreement = engine.create_agreement(
            debt_id,
            data.get("installments"),
            evaluation_date=_date_arg("evaluation_date"),
            payment_method=_enum(PaymentMethod, data.get("payment_method", "BOLETO"), "payment_method"),
            first_due_date=first_due_date,
        )
        logger.info(f"Agreement created: {agreement.protocol_number}")
        return jsonify(output.agreement(agreement)), 201

    @app.route("/debts/<debt_id>/payment", methods=["POST"])
    def record_payment(debt_id):
        data = request.get_json(force=True, silent=True) or {}
        debt = engine.record_payment(debt_id, _decimal(data.get("settled_amount"), "settled_amount"))
        return jsonify(output.debt(debt)), 200

    @app.route("/debts/<debt_id>/petition", methods=["POST"])
    def generate_petition(debt_id):
        data = _json_body()
        attempt = engine.generate_petition(debt_id, data.get("author", ""), data.get("notes", ""))
        return jsonify(output.attempt(attempt)), 201

    @app.route("/tenants/<tenant_id>/cases", methods=["GET"])
    def list_cases(tenant_id):
        cases = engine.cases(tenant_id, _date_arg("evaluation_date"))
        return jsonify([output.case(c) for c in cases]), 200

    @app.route("/tenants/<tenant_id>/summary", methods=["GET"])
    def recovery_summary(tenant_id):
        return jsonify(output.summary(engine.recovery_summary(tenant_id))), 200

    @app.route("/tenants/<tenant_id>/refresh_overdue", methods=["POST"])
    def refresh_overdue(tenant_id):
        changed = engine.refresh_overdue(tenant_id, _date_arg("as_of"))
        return jsonify({"updated": changed}), 200

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
