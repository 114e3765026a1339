"""Ledger bounded context — site inventory, transfers and material requests.

Tracks stock quantities and weighted-average cost per site (CQRS), moves
stock between sites, manages the material request lifecycle and allocates
received stock to outstanding requests.
"""

from protean.domain import Domain

from ledger.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

ledger = Domain(name="ledger")
