# Overview: Flask API routes for customers, products and categories.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BookkeepingError, error_response
from ..models import Category, Customer, Product
from ..services import catalog_service, invoice_service
from ..validation import ModelValidationPolicy, validate_payload
from .common import bool_arg, json_body, list_response, pagination_args


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "phone2", "address", "notes", "is_active"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "description", "default_price", "is_active"},
    required_on_create={"name"},
    non_negative={"default_price"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.get("")
def list_customers_route():
    limit, offset = pagination_args()
    rows, total = catalog_service.list_customers(
        search=request.args.get("search"),
        include_inactive=bool_arg("include_inactive"),
        limit=limit,
        offset=offset,
    )
    return list_response(rows, total, limit, offset)


@customers_bp.post("")
def create_customer_route():
    try:
        patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=False)
        customer = catalog_service.create_customer(patch=patch)
        return jsonify(customer.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    """Customer with receivable summary and latest invoices."""
    try:
        customer = catalog_service.require_customer(customer_id)
        invoices, _ = invoice_service.list_invoices(customer_id=customer.id, limit=20)
        data = customer.to_dict()
        data["summary"] = catalog_service.customer_summary(customer)
        data["invoices"] = [i.to_dict() for i in invoices]
        return jsonify(data)
    except BookkeepingError as e:
        return error_response(e)


@customers_bp.get("/<int:customer_id>/transactions")
def customer_transactions_route(customer_id: int):
    try:
        customer = catalog_service.require_customer(customer_id)
        return jsonify({"items": catalog_service.customer_transactions(customer)})
    except BookkeepingError as e:
        return error_response(e)


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        patch = validate_payload(model=Customer, payload=json_body(), policy=CUSTOMER_POLICY, partial=True)
        customer = catalog_service.update_customer(customer_id=customer_id, patch=patch)
        return jsonify(customer.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
def deactivate_customer_route(customer_id: int):
    try:
        customer = catalog_service.deactivate_customer(customer_id=customer_id)
        return jsonify(customer.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
def list_products_route():
    limit, offset = pagination_args()
    rows, total = catalog_service.list_products(
        search=request.args.get("search"),
        include_inactive=bool_arg("include_inactive"),
        limit=limit,
        offset=offset,
    )
    return list_response(rows, total, limit, offset)


@products_bp.post("")
def create_product_route():
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=False)
        product = catalog_service.create_product(patch=patch)
        return jsonify(product.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(catalog_service.require_product(product_id).to_dict())
    except BookkeepingError as e:
        return error_response(e)


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=True)
        product = catalog_service.update_product(product_id=product_id, patch=patch)
        return jsonify(product.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
def deactivate_product_route(product_id: int):
    try:
        product = catalog_service.deactivate_product(product_id=product_id)
        return jsonify(product.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CATEGORIES
# =============================================================================

@categories_bp.get("")
def list_categories_route():
    rows = catalog_service.list_categories(active_only=bool_arg("active_only"))
    return jsonify({"items": rows, "count": len(rows)})


@categories_bp.post("")
def create_category_route():
    try:
        patch = validate_payload(model=Category, payload=json_body(), policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch=patch)
        return jsonify(category.to_dict()), 201
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    """Category with its products."""
    try:
        category = catalog_service.require_category(category_id)
        data = category.to_dict()
        data["products"] = [p.to_dict() for p in category.products]
        return jsonify(data)
    except BookkeepingError as e:
        return error_response(e)


@categories_bp.put("/<int:category_id>")
def update_category_route(category_id: int):
    try:
        patch = validate_payload(model=Category, payload=json_body(), policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.update_category(category_id=category_id, patch=patch)
        return jsonify(category.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
def deactivate_category_route(category_id: int):
    try:
        category = catalog_service.deactivate_category(category_id=category_id)
        return jsonify(category.to_dict())
    except BookkeepingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate category")
        return jsonify({"error": "Internal server error"}), 500
