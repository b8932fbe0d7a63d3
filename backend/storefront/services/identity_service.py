# Overview: Service-layer operations for user identity; id allocation and category migration.

"""
Identity Registry - category-tagged user ids

WHY: The account category is encoded in the id itself ("cu000042" is a
customer, "fr000007" a franchise) so any component holding only the id can
classify the account without a lookup. Changing category therefore re-keys
the user document instead of flipping a field.

ID ALLOCATION:
- One counter document per category (counters/customerCounter,
  counters/franchiseCounter) holding currentCount
- Read-increment-write inside a store transaction; a missing counter counts as 0
- Format: <prefix><number zero-padded to 6 digits>

LINEAGE:
- upgrade: customer -> franchise, new document carries previousId (the customer id)
- revert: franchise -> customer, restores previousId and records previousFranchiseId
- re-upgrade after a revert reuses previousFranchiseId instead of allocating

Both migrations are single atomic moves: the new document is written and
the old one deleted in the same transaction.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from flask import current_app

from .document_store import (
    document_store,
    DocumentNotFoundError,
    DocumentSnapshot,
    TransactionAbortedError,
    SERVER_TIMESTAMP,
)


USERS_COLLECTION = "users"
COUNTERS_COLLECTION = "counters"
ID_DIGITS = 6

# Lineage and identity fields never accepted from profile updates
PROTECTED_FIELDS = ("id", "userId", "category", "createdAt", "previousId", "previousFranchiseId")


class IdentityError(Exception):
    """Base class for identity registry failures."""
    pass


class DuplicateEmailError(IdentityError):
    """Raised when creating a user whose email is already registered."""
    pass


class AllocationError(IdentityError):
    """Raised when the counter transaction cannot commit."""
    pass


class InvalidCategoryTransitionError(IdentityError):
    """Raised when a migration is requested from the wrong category."""
    pass


class MissingLineageError(IdentityError):
    """Raised when reverting a franchise without a valid previousId."""
    pass


class UserNotFoundError(IdentityError):
    """Raised when the user document does not exist."""
    pass


class UserCategory(str, enum.Enum):
    CUSTOMER = "customer"
    FRANCHISE = "franchise"

    @property
    def prefix(self) -> str:
        return _CATEGORY_PREFIXES[self]

    @property
    def counter_doc(self) -> str:
        return f"{self.value}Counter"

    @classmethod
    def from_prefix(cls, prefix: str) -> "UserCategory":
        for category, category_prefix in _CATEGORY_PREFIXES.items():
            if category_prefix == prefix:
                return category
        raise ValueError(f"Unknown category prefix: {prefix!r}")


_CATEGORY_PREFIXES = {
    UserCategory.CUSTOMER: "cu",
    UserCategory.FRANCHISE: "fr",
}

_USER_ID_RE = re.compile(r"^(cu|fr)(\d+)$")


@dataclass(frozen=True)
class UserId:
    """
    Parsed user id. Only the string form is ever stored.

    str(UserId(UserCategory.CUSTOMER, 1)) == "cu000001"
    """
    category: UserCategory
    number: int

    def __str__(self) -> str:
        return f"{self.category.prefix}{self.number:0{ID_DIGITS}d}"

    @classmethod
    def parse(cls, value: str | None) -> "UserId | None":
        if not value:
            return None
        match = _USER_ID_RE.match(value)
        if not match:
            return None
        return cls(UserCategory.from_prefix(match.group(1)), int(match.group(2)))


def detect_category(user_id: str | None) -> str | None:
    """Category name from the two-character id prefix; None if unrecognised."""
    if not user_id:
        return None
    for category, prefix in _CATEGORY_PREFIXES.items():
        if user_id.startswith(prefix):
            return category.value
    return None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_next_user_id(category: str | UserCategory = "cu") -> str:
    """
    Atomically allocate the next id for a category ("cu" / "fr" or a UserCategory).

    Raises AllocationError if the counter transaction cannot commit.
    """
    if not isinstance(category, UserCategory):
        category = UserCategory.from_prefix(category)

    def _allocate(transaction) -> str:
        counter = transaction.get(COUNTERS_COLLECTION, category.counter_doc)
        next_number = counter.get("currentCount", 0) + 1
        transaction.set(COUNTERS_COLLECTION, category.counter_doc, {"currentCount": next_number})
        return str(UserId(category, next_number))

    try:
        user_id = document_store.run_transaction(_allocate)
    except TransactionAbortedError as exc:
        raise AllocationError(f"Failed to generate {category.value} id: {exc}") from exc

    current_app.logger.info("Allocated user id %s", user_id)
    return user_id


def _to_user(snapshot: DocumentSnapshot) -> dict | None:
    return snapshot.to_dict() if snapshot.exists else None


def get_user_by_id(user_id: str) -> dict | None:
    return _to_user(document_store.get_document(USERS_COLLECTION, user_id))


def get_user_by_email(email: str) -> dict | None:
    """Lookup by case-folded email. Returns the first match or None."""
    if not email:
        raise ValueError("Email is required")

    matches = document_store.query_equal(USERS_COLLECTION, {"email": normalize_email(email)})
    if not matches:
        return None
    return matches[0].to_dict()


def list_users(category: str | None = None) -> list[dict]:
    """All users, optionally restricted to one category name."""
    users = [snapshot.to_dict() for snapshot in document_store.list_documents(USERS_COLLECTION)]
    if category is None:
        return users
    return [user for user in users if detect_category(user["id"]) == category]


def create_user(user_data: dict) -> str:
    """
    Create a customer account and return its id.

    New users are always customers; franchise accounts only arise through
    upgrade_to_franchise.

    Raises:
        ValueError: email missing
        DuplicateEmailError: email already registered (case-insensitive)
        AllocationError: id counter could not be advanced
        DocumentExistsError: allocated id already holds a user document
    """
    email = user_data.get("email")
    if not email:
        raise ValueError("Email is required")

    if get_user_by_email(email):
        raise DuplicateEmailError("Email already exists")

    user_id = generate_next_user_id(UserCategory.CUSTOMER)

    user_doc = {
        **user_data,
        "email": normalize_email(email),
        "primaryPhone": user_data.get("primaryPhone") or "",
        "secondaryPhone": user_data.get("secondaryPhone") or "",
        "id": user_id,
        "userId": user_id,
        "category": detect_category(user_id),
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }

    document_store.create_document(USERS_COLLECTION, user_id, user_doc)
    return user_id


def update_user(user_id: str, update_data: dict) -> dict:
    """
    Merge profile fields into a user. The category is always recomputed
    from the id; identity and lineage fields cannot be rewritten.

    Raises:
        UserNotFoundError: no document for user_id
        DuplicateEmailError: the new email belongs to another user
    """
    changes = {key: value for key, value in update_data.items() if key not in PROTECTED_FIELDS}
    if changes.get("email"):
        changes["email"] = normalize_email(changes["email"])
        existing = get_user_by_email(changes["email"])
        if existing and existing["id"] != user_id:
            raise DuplicateEmailError("Email already exists")

    category = detect_category(user_id)
    if category:
        changes["category"] = category
    changes["updatedAt"] = SERVER_TIMESTAMP

    try:
        document_store.update_document(USERS_COLLECTION, user_id, changes)
    except DocumentNotFoundError as exc:
        raise UserNotFoundError("User not found") from exc

    return get_user_by_id(user_id)


def update_user_active_status(user_id: str, is_active: bool) -> None:
    if not user_id:
        raise ValueError("User ID is required")

    try:
        document_store.update_document(USERS_COLLECTION, user_id, {
            "isActive": is_active,
            "lastActiveAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        })
    except DocumentNotFoundError as exc:
        raise UserNotFoundError("User not found") from exc


def login_user(email: str) -> dict:
    """Mark the account registered under email active and return it."""
    user = get_user_by_email(email)
    if not user:
        raise UserNotFoundError("User not found")

    update_user_active_status(user["id"], True)
    return get_user_by_id(user["id"])


def logout_user(user_id: str) -> None:
    update_user_active_status(user_id, False)


def delete_user(user_id: str) -> None:
    """Hard delete; only reachable from explicit admin actions."""
    if not get_user_by_id(user_id):
        raise UserNotFoundError("User not found")
    document_store.delete_document(USERS_COLLECTION, user_id)


def _move_user(old_id: str, new_id: str, lineage: dict) -> str:
    def _transform(data: dict) -> dict:
        return {
            **data,
            "id": new_id,
            "userId": new_id,
            "category": detect_category(new_id),
            **lineage,
            "updatedAt": SERVER_TIMESTAMP,
        }

    try:
        return document_store.move_document(USERS_COLLECTION, old_id, new_id, _transform)
    except DocumentNotFoundError as exc:
        raise UserNotFoundError("Original user no longer exists") from exc


def upgrade_to_franchise(user_id: str) -> str:
    """
    Move a customer to a franchise id and return the franchise id.

    Reuses previousFranchiseId when the customer was reverted from a
    franchise before; otherwise allocates a fresh "fr" id.
    """
    if detect_category(user_id) != UserCategory.CUSTOMER.value:
        raise InvalidCategoryTransitionError("Only customers can be upgraded to franchise")

    user = get_user_by_id(user_id)
    if not user:
        raise UserNotFoundError("User not found")

    previous_franchise_id = user.get("previousFranchiseId")
    if detect_category(previous_franchise_id) == UserCategory.FRANCHISE.value:
        franchise_id = previous_franchise_id
    else:
        franchise_id = generate_next_user_id(UserCategory.FRANCHISE)

    _move_user(user_id, franchise_id, {"previousId": user_id, "previousFranchiseId": None})

    current_app.logger.info("Upgraded user %s to franchise %s", user_id, franchise_id)
    return franchise_id


def revert_to_customer(user_id: str) -> str:
    """Move a franchise back to the customer id it was upgraded from."""
    if detect_category(user_id) != UserCategory.FRANCHISE.value:
        raise InvalidCategoryTransitionError("Only franchises can be reverted to customer")

    user = get_user_by_id(user_id)
    if not user:
        raise UserNotFoundError("User not found")

    customer_id = user.get("previousId")
    if detect_category(customer_id) != UserCategory.CUSTOMER.value:
        raise MissingLineageError("Original customer ID not found or invalid")

    _move_user(user_id, customer_id, {"previousFranchiseId": user_id, "previousId": None})

    current_app.logger.info("Reverted franchise %s to customer %s", user_id, customer_id)
    return customer_id
