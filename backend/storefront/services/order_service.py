# Overview: Service-layer operations for orders; sequence numbers, order codes and persistence.

"""
Order Sequencer - per-customer order numbers and readable order codes

ORDER NUMBER: 1-based, unique per userId. create_order assigns it inside a
store transaction against counters/orderCounter_<userId>; a missing counter
is seeded from the number of orders already on file for that user so
numbering continues where count-based numbering left off.

ORDER CODE: plain concatenation, no separators:
    "cu" + zipCode + countryCode.lower() + <first 2 chars of each item name,
    lower-cased, in item order> + orderNumber + (franchiseId or "none")

    e.g. zip 90210, US, [Widget, Gadget], order 3, no franchise
         -> "cu90210uswiga3none"

The code is a label for humans (tracking links, support calls), not a key.
It is not checked for uniqueness; lookups always pair it with the userId.
"""

from __future__ import annotations

from numbers import Real

from flask import current_app

from .document_store import document_store, SERVER_TIMESTAMP


ORDERS_COLLECTION = "orders"
COUNTERS_COLLECTION = "counters"
ORDER_CODE_PREFIX = "cu"
NO_FRANCHISE = "none"

# pending is the only status assigned here; the rest are tracking stages
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered")
DEFAULT_STATUS = "pending"


class OrderError(Exception):
    """Base class for order sequencer failures."""
    pass


class InvalidOrderError(OrderError):
    """Raised when order input is malformed."""
    pass


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def order_counter_doc(user_id: str) -> str:
    return f"orderCounter_{user_id}"


def validate_items(items) -> None:
    """Raises InvalidOrderError unless items is a non-empty list of priced lines."""
    if not isinstance(items, (list, tuple)) or not items:
        raise InvalidOrderError("Order must contain at least one item")

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidOrderError(f"Item {index} must be an object")
        if not isinstance(item.get("name"), str) or not item["name"]:
            raise InvalidOrderError(f"Item {index} requires a name")
        if not _is_number(item.get("price")):
            raise InvalidOrderError(f"Item {index} requires a numeric price")
        if not _is_number(item.get("quantity")):
            raise InvalidOrderError(f"Item {index} requires a numeric quantity")


def calculate_total(items: list[dict]) -> float:
    validate_items(items)
    return sum(item["price"] * item["quantity"] for item in items)


def derive_order_code(
    zip_code: str,
    country_code: str,
    items: list[dict],
    order_number: int,
    franchise_id: str | None = None,
) -> str:
    """Build the order code. Pure: identical inputs give identical codes."""
    item_tokens = "".join(item["name"][:2].lower() for item in items)
    return "".join([
        ORDER_CODE_PREFIX,
        str(zip_code),
        country_code.lower(),
        item_tokens,
        str(order_number),
        franchise_id or NO_FRANCHISE,
    ])


def next_order_number(user_id: str) -> int:
    """Orders on file for user_id plus one. Not reserved; see create_order."""
    return document_store.count_equal(ORDERS_COLLECTION, {"userId": user_id}) + 1


def create_order(order_data: dict) -> dict:
    """
    Validate and persist an order.

    Input keys: userId, items, shippingAddress {zipCode, country, ...},
    optional franchiseId, customer (contact info), sellerMessage.

    Returns {"orderId", "orderCode", "orderNumber"}.

    Raises:
        InvalidOrderError: missing user, empty/malformed items, incomplete address
        PersistenceError: the store write failed
    """
    user_id = order_data.get("userId")
    if not user_id:
        raise InvalidOrderError("userId is required")

    items = order_data.get("items")
    validate_items(items)

    address = order_data.get("shippingAddress") or {}
    zip_code = address.get("zipCode")
    country_code = address.get("country")
    if not zip_code:
        raise InvalidOrderError("shippingAddress.zipCode is required")
    if not country_code or not isinstance(country_code, str):
        raise InvalidOrderError("shippingAddress.country is required")

    franchise_id = order_data.get("franchiseId") or None
    lines = [
        {
            "id": item.get("id"),
            "name": item["name"],
            "price": item["price"],
            "quantity": item["quantity"],
        }
        for item in items
    ]
    total = calculate_total(lines)
    counter_id = order_counter_doc(user_id)

    def _place(transaction) -> dict:
        counter = transaction.get(COUNTERS_COLLECTION, counter_id)
        if counter.exists:
            current = counter.get("currentCount", 0)
        else:
            current = transaction.count_equal(ORDERS_COLLECTION, {"userId": user_id})
        order_number = current + 1
        order_code = derive_order_code(zip_code, country_code, lines, order_number, franchise_id)
        order_id = document_store.new_document_id()

        transaction.set(COUNTERS_COLLECTION, counter_id, {"currentCount": order_number})
        transaction.set(ORDERS_COLLECTION, order_id, {
            "userId": user_id,
            "customer": order_data.get("customer") or {},
            "shippingAddress": address,
            "items": lines,
            "totalAmount": total,
            "franchiseId": franchise_id,
            "sellerMessage": order_data.get("sellerMessage") or "",
            "orderNumber": order_number,
            "orderCode": order_code,
            "status": DEFAULT_STATUS,
            "createdAt": SERVER_TIMESTAMP,
        })
        return {"orderId": order_id, "orderCode": order_code, "orderNumber": order_number}

    result = document_store.run_transaction(_place)
    current_app.logger.info(
        "Created order %s (%s) for user %s", result["orderId"], result["orderCode"], user_id
    )
    return result


def get_orders_by_code(order_code: str, user_id: str) -> list[dict]:
    """
    Orders matching both the code and the owning user.

    The code alone is never enough to read an order. More than one match
    means two orders derived the same code.
    """
    orders = [
        snapshot.to_dict()
        for snapshot in document_store.query_equal(
            ORDERS_COLLECTION, {"orderCode": order_code, "userId": user_id}
        )
    ]
    if len(orders) > 1:
        current_app.logger.warning(
            "Order code collision: %s matches %d orders for user %s", order_code, len(orders), user_id
        )
    return orders


def get_orders_for_user(user_id: str) -> list[dict]:
    snapshots = document_store.query_equal(ORDERS_COLLECTION, {"userId": user_id})
    return [snapshot.to_dict() for snapshot in snapshots]


def get_order(order_id: str) -> dict | None:
    snapshot = document_store.get_document(ORDERS_COLLECTION, order_id)
    return snapshot.to_dict() if snapshot.exists else None
