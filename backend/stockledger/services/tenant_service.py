"""
Business scoping helpers.

Every engine validates ids taken from client input against the caller's
business before touching stock. A row that exists in another business is
reported exactly like a missing row so nothing leaks across tenants.

USAGE:
    branch = require_branch_in_business(branch_id, business_id)
    products = require_products_in_business(product_ids, business_id)
"""

from __future__ import annotations

import logging

from ..errors import InvalidArgumentError, NotFoundError
from ..extensions import db
from ..models import Branch, Business, Product


logger = logging.getLogger(__name__)


def require_business(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("Business not found", {"business_id": business_id})
    return business


def require_branch_in_business(branch_id: int, business_id: int) -> Branch:
    """
    Validate that a branch belongs to the business.

    Raises:
        NotFoundError if the branch doesn't exist or belongs to another business
    """
    branch = db.session.query(Branch).filter_by(id=branch_id, business_id=business_id).first()
    if branch is None:
        logger.info("Branch %s not found in business %s", branch_id, business_id)
        raise NotFoundError("Branch not found", {"branch_id": branch_id})
    return branch


def require_products_in_business(product_ids, business_id: int) -> dict[int, Product]:
    """
    Validate that every product belongs to the business.

    Unlike branches, a foreign product is a malformed command rather than a
    missing resource, so this raises InvalidArgumentError.

    Returns:
        Mapping of product id to Product
    """
    wanted = set(product_ids)
    if not wanted:
        return {}

    products = (
        db.session.query(Product)
        .filter(Product.business_id == business_id, Product.id.in_(wanted))
        .all()
    )
    found = {p.id: p for p in products}
    missing = sorted(wanted - set(found))
    if missing:
        logger.info("Products %s not found in business %s", missing, business_id)
        raise InvalidArgumentError(
            "One or more products do not belong to this business",
            {"product_ids": missing},
        )
    return found
