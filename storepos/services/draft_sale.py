"""
Draft Sale Session - in-memory cart for one seller at the register.

The draft is never persisted. Every transition is synchronous, validated and
reported through a ``Transition`` result instead of an exception, because a
rejected transition (e.g. "payment not chosen yet") is an expected UI state.
"""
import enum
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from storepos.models.sale import PaymentMethod

CENTS = Decimal('0.01')


class SaleStep(str, enum.Enum):
    """Position of the draft in the register workflow."""
    CUSTOMER = 'CUSTOMER'
    PRODUCTS = 'PRODUCTS'
    PAYMENT = 'PAYMENT'
    CONFIRMATION = 'CONFIRMATION'


class DraftViolation(str, enum.Enum):
    """Reason a draft transition was rejected."""
    INVALID_QUANTITY = 'INVALID_QUANTITY'
    INVALID_PRICE = 'INVALID_PRICE'
    EMPTY_CART = 'EMPTY_CART'
    ITEM_NOT_FOUND = 'ITEM_NOT_FOUND'
    INVALID_PAYMENT_METHOD = 'INVALID_PAYMENT_METHOD'
    INVALID_CUSTOMER = 'INVALID_CUSTOMER'


@dataclass(frozen=True)
class Transition:
    """Outcome of a draft mutation; truthy when it was applied."""
    ok: bool
    violation: Optional[DraftViolation] = None

    def __bool__(self):
        return self.ok


APPLIED = Transition(True)


def _rejected(violation: DraftViolation) -> Transition:
    return Transition(False, violation)


@dataclass(frozen=True)
class CustomerRef:
    """Customer selected for the draft."""
    id: int
    name: Optional[str] = None


@dataclass
class LineItem:
    """One product row of the cart."""
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        # Derived on every read so a merge never leaves a stale value
        return (self.unit_price * self.quantity).quantize(CENTS)

    def to_dict(self) -> Dict:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'subtotal': str(self.subtotal),
        }


def _valid_quantity(quantity) -> bool:
    return isinstance(quantity, int) and not isinstance(quantity, bool) and quantity >= 1


def _parse_price(unit_price) -> Optional[Decimal]:
    """Return the price as a cent-quantized Decimal, or None if invalid."""
    try:
        price = Decimal(str(unit_price))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not price.is_finite() or price < 0:
        return None
    return price.quantize(CENTS)


class DraftSale:
    """
    In-progress sale owned by a single seller.

    ``draft_id`` doubles as the idempotency key of the commit; it is renewed
    on ``reset()`` so a new sale can never replay the previous one.
    """

    def __init__(self):
        self.reset()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def line_items(self) -> List[LineItem]:
        return list(self._lines.values())

    @property
    def total_amount(self) -> Decimal:
        return sum((line.subtotal for line in self._lines.values()), Decimal('0.00')).quantize(CENTS)

    @property
    def step(self) -> SaleStep:
        if self.customer is None:
            return SaleStep.CUSTOMER
        if not self._lines:
            return SaleStep.PRODUCTS
        if self.payment_method is None:
            return SaleStep.PAYMENT
        return SaleStep.CONFIRMATION

    def can_commit(self) -> bool:
        return self.customer is not None and bool(self._lines) and self.payment_method is not None

    def missing_fields(self) -> List[str]:
        """Names of the prerequisites still unmet before commit."""
        missing = []
        if self.customer is None:
            missing.append('customer')
        if not self._lines:
            missing.append('line_items')
        if self.payment_method is None:
            missing.append('payment_method')
        return missing

    def get_line(self, product_id: int) -> Optional[LineItem]:
        return self._lines.get(product_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_customer(self, customer) -> Transition:
        """Set the customer. Accepts a CustomerRef, a Customer row or an id."""
        if isinstance(customer, CustomerRef):
            self.customer = customer
        elif hasattr(customer, 'id'):
            self.customer = CustomerRef(id=customer.id, name=getattr(customer, 'name', None))
        else:
            try:
                self.customer = CustomerRef(id=int(customer))
            except (TypeError, ValueError):
                return _rejected(DraftViolation.INVALID_CUSTOMER)
        return APPLIED

    def add_item(self, product_id: int, quantity: int, unit_price) -> Transition:
        """Append a product or merge it into its existing line."""
        if not _valid_quantity(quantity):
            return _rejected(DraftViolation.INVALID_QUANTITY)
        price = _parse_price(unit_price)
        if price is None:
            return _rejected(DraftViolation.INVALID_PRICE)

        line = self._lines.get(product_id)
        if line:
            line.quantity += quantity
            line.unit_price = price
        else:
            self._lines[product_id] = LineItem(product_id=product_id, quantity=quantity, unit_price=price)
        return APPLIED

    def update_quantity(self, product_id: int, quantity: int) -> Transition:
        if not _valid_quantity(quantity):
            return _rejected(DraftViolation.INVALID_QUANTITY)
        line = self._lines.get(product_id)
        if line is None:
            return _rejected(DraftViolation.ITEM_NOT_FOUND)
        line.quantity = quantity
        return APPLIED

    def remove_item(self, product_id: int) -> Transition:
        if self._lines.pop(product_id, None) is None:
            return _rejected(DraftViolation.ITEM_NOT_FOUND)
        return APPLIED

    def set_payment_method(self, method) -> Transition:
        if not self._lines:
            return _rejected(DraftViolation.EMPTY_CART)
        parsed = PaymentMethod.parse(method)
        if parsed is None:
            return _rejected(DraftViolation.INVALID_PAYMENT_METHOD)
        self.payment_method = parsed
        return APPLIED

    def reset(self) -> Transition:
        """Clear the draft for a new sale (also used after a successful commit)."""
        self.draft_id = uuid.uuid4().hex
        self.customer: Optional[CustomerRef] = None
        self.payment_method: Optional[PaymentMethod] = None
        # Insertion ordered; keys are unique product ids
        self._lines: Dict[int, LineItem] = {}
        return APPLIED

    cancel = reset

    def to_dict(self) -> Dict:
        return {
            'draft_id': self.draft_id,
            'step': self.step.value,
            'customer': (
                {'id': self.customer.id, 'name': self.customer.name}
                if self.customer else None
            ),
            'line_items': [line.to_dict() for line in self._lines.values()],
            'payment_method': self.payment_method.value if self.payment_method else None,
            'total_amount': str(self.total_amount),
            'can_commit': self.can_commit(),
        }

    def __repr__(self):
        return f"<DraftSale(draft_id={self.draft_id}, step={self.step.value}, lines={len(self._lines)})>"


class DraftSessionStore:
    """
    Holds the active draft of each seller.

    A draft lives as long as its seller's session; concurrent mutation from
    two tabs of the same seller is last-writer-wins.
    """

    def __init__(self):
        self._drafts: Dict[int, DraftSale] = {}

    def get(self, seller_id: int) -> DraftSale:
        """Return the seller's draft, creating an empty one on first use."""
        draft = self._drafts.get(seller_id)
        if draft is None:
            draft = self._drafts.setdefault(seller_id, DraftSale())
        return draft

    def discard(self, seller_id: int) -> None:
        self._drafts.pop(seller_id, None)

    def __contains__(self, seller_id) -> bool:
        return seller_id in self._drafts

    def __len__(self) -> int:
        return len(self._drafts)
