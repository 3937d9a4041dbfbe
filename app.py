import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)

logger = logging.getLogger("ERP.App")

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_PATH = os.path.join(BASE_DIR, "data_base")


def _default_config() -> dict:
    data_path = os.environ.get("DATA_PATH", DATA_PATH)
    return dict(
        ENV="production",
        DEBUG=False,
        TESTING=False,
        DATA_PATH=data_path,
        COMPANY_SETTINGS_PATH=os.environ.get(
            "COMPANY_SETTINGS_PATH", os.path.join(data_path, "company_settings.json")
        ),
        ACTIVITY_LOG_PATH=os.environ.get(
            "ACTIVITY_LOG_PATH", os.path.join(data_path, "activity_log.csv")
        ),
        BACKEND_URL=os.environ.get("BACKEND_URL"),
        BACKEND_API_KEY=os.environ.get("BACKEND_API_KEY", ""),
        BACKEND_TIMEOUT_S=float(os.environ.get("BACKEND_TIMEOUT_S", "10")),
    )


def init_services(app: Flask) -> dict:
    """Build the service graph once and attach it to the app."""
    from agents.inventory import InventoryAgent
    from agents.reorder_prediction_agent import ReorderPredictionAgent
    from agents.stock_alert_agent import StockAlertAgent
    from execution.activity_logger import ActivityLogger
    from execution.bulk_action_dispatcher import BulkActionDispatcher
    from services.category_service import CategoryService
    from services.outbound_service import OutboundService
    from services.procurement_service import ProcurementService
    from services.product_service import ProductService
    from services.profile_service import ProfileService
    from services.reorder_service import ReorderService
    from services.settings_service import CompanySettingsStore, ReplenishmentPolicy
    from services.table_gateway import build_gateway, InMemoryTableGateway

    policy = ReplenishmentPolicy.from_mapping(app.config)
    settings_store = CompanySettingsStore(app.config["COMPANY_SETTINGS_PATH"])
    settings_store.load()

    gateway = app.config.get("TABLE_GATEWAY") or build_gateway(app.config)
    product_service = ProductService(gateway)
    procurement_service = ProcurementService(gateway)

    inventory = InventoryAgent(data_path=app.config["DATA_PATH"])
    if isinstance(gateway, InMemoryTableGateway):
        inventory.load_data()
        if not gateway.select("products"):
            for record in inventory.list_records():
                product_service.create(record)
    else:
        inventory.replace(product_service.list_records())

    reorder_service = ReorderService(policy)

    registry = {
        "policy": policy,
        "settings": settings_store,
        "gateway": gateway,
        "inventory": inventory,
        "reorder": reorder_service,
        "alerts": StockAlertAgent(reorder_service),
        "predictions": ReorderPredictionAgent(reorder_service),
        "products": product_service,
        "categories": CategoryService(gateway),
        "procurement": procurement_service,
        "outbound": OutboundService(gateway),
        "profiles": ProfileService(gateway),
        "bulk": BulkActionDispatcher(
            reorder_service=reorder_service,
            procurement_service=procurement_service,
            settings_store=settings_store,
            activity_logger=ActivityLogger(app.config["ACTIVITY_LOG_PATH"]),
        ),
    }
    app.extensions["erp"] = registry
    logger.info(f"Services ready ({len(inventory.list_records())} products in session)")
    return registry


def register_error_handlers(app: Flask) -> None:
    from agents.reorder_prediction_agent import AnalysisInProgressError
    from execution.bulk_action_dispatcher import BulkActionError
    from services.export_service import MalformedImportError
    from services.outbound_service import OutboundException
    from services.procurement_service import ProcurementException
    from services.reorder_service import ReorderServiceException
    from services.settings_service import SettingsValidationError
    from services.table_gateway import BackendError

    def _error(message, status):
        return jsonify({"status": "ERROR", "message": message}), status

    @app.errorhandler(BackendError)
    def backend_error(e):
        logger.error(f"Backend call failed: {e}")
        return _error(str(e), 502)

    @app.errorhandler(AnalysisInProgressError)
    def analysis_busy(e):
        return _error(str(e), 409)

    @app.errorhandler(BulkActionError)
    @app.errorhandler(MalformedImportError)
    @app.errorhandler(OutboundException)
    @app.errorhandler(ProcurementException)
    @app.errorhandler(ReorderServiceException)
    @app.errorhandler(SettingsValidationError)
    def validation_error(e):
        return _error(str(e), 400)

    @app.errorhandler(Exception)
    def unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unhandled error: {e}")
        return _error("Internal server error", 500)


def create_app(config_object: str | None = None, test_config: dict | None = None) -> Flask:
    """
    Application Factory

    Responsibilities:
    - Create Flask app instance
    - Load configuration
    - Build services
    - Register blueprints and error handlers

    NO business logic must exist here.
    """

    app = Flask(__name__)

    # ------------------------------------------------------------------
    # CORS – the admin console is served from a different origin
    # ------------------------------------------------------------------
    CORS(app)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    app.config.from_mapping(_default_config())
    if config_object:
        app.config.from_object(config_object)
    if test_config:
        app.config.from_mapping(test_config)

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------
    init_services(app)
    register_error_handlers(app)

    # ------------------------------------------------------------------
    # Blueprint Registration
    # ------------------------------------------------------------------
    from routes.inventory_routes import inventory_bp
    from routes.reorder_routes import reorder_bp
    from routes.procurement_routes import procurement_bp
    from routes.outbound_routes import outbound_bp
    from routes.category_routes import category_bp
    from routes.settings_routes import settings_bp

    app.register_blueprint(inventory_bp)
    app.register_blueprint(reorder_bp)
    app.register_blueprint(procurement_bp)
    app.register_blueprint(outbound_bp)
    app.register_blueprint(category_bp)
    app.register_blueprint(settings_bp)

    # ------------------------------------------------------------------
    # Return Application Instance
    # ------------------------------------------------------------------
    return app


# ----------------------------------------------------------------------
# Application Entry Point
# ----------------------------------------------------------------------
if __name__ == "__main__":
    application = create_app()
    # Print all registered routes for easy reference
    print("\n=== Registered Routes ===")
    for rule in sorted(application.url_map.iter_rules(), key=lambda r: r.rule):
        methods = ','.join(sorted(r for r in rule.methods if r not in ('HEAD','OPTIONS')))
        print(f"  [{methods:6}] {rule.rule}")
    print("========================\n")
    application.run(host="0.0.0.0", port=5000, debug=False, use_reloader=False)
