"""Custom exceptions for the POS application."""


def _fmt_qty(value):
    """Render a quantity without trailing decimals."""
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class PosError(Exception):
    """Base exception for all application errors."""
    code = 'POS_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    code = 'BUSINESS_RULE'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ValidationError(BusinessLogicError):
    """Caller mistake detected locally; never reaches storage."""
    code = 'VALIDATION_ERROR'

    def __init__(self, message, payload=None):
        super().__init__(message, status_code=422, payload=payload)


class InvalidQuantityError(ValidationError):
    code = 'INVALID_QUANTITY'

    def __init__(self, message='La cantidad debe ser mayor a 0', payload=None):
        super().__init__(message, payload)


class InvalidPriceError(ValidationError):
    code = 'INVALID_PRICE'

    def __init__(self, message='El precio unitario no puede ser negativo', payload=None):
        super().__init__(message, payload)


class EmptyCartError(ValidationError):
    code = 'EMPTY_CART'

    def __init__(self, message='El carrito está vacío', payload=None):
        super().__init__(message, payload)


class InvalidPaymentMethodError(ValidationError):
    code = 'INVALID_PAYMENT_METHOD'

    def __init__(self, message='Método de pago inválido', payload=None):
        super().__init__(message, payload)


class InvalidCustomerError(ValidationError):
    code = 'INVALID_CUSTOMER'

    def __init__(self, message='Cliente inválido', payload=None):
        super().__init__(message, payload)


class ItemNotInDraftError(ValidationError):
    code = 'ITEM_NOT_FOUND'

    def __init__(self, message='El producto no está en el carrito', payload=None):
        super().__init__(message, payload)


class DraftIncompleteError(ValidationError):
    """Raised when a draft lacks customer, items or payment method."""
    code = 'DRAFT_INCOMPLETE'

    def __init__(self, message='La venta requiere cliente, productos y método de pago', missing=None):
        self.missing = list(missing or [])
        super().__init__(message, payload={'missing': self.missing})


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    code = 'INSUFFICIENT_STOCK'

    def __init__(self, product_id, available, requested, product_name=None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        label = product_name or f'#{product_id}'
        message = (
            f"Stock insuficiente para {label}: se requieren {_fmt_qty(requested)}, "
            f"disponible {_fmt_qty(available)}"
        )
        payload = {'product_id': product_id, 'available': available, 'requested': requested}
        super().__init__(message, status_code=409, payload=payload)


class SaleStateError(BusinessLogicError):
    """Raised when a sale is not in a state that allows the operation."""
    code = 'INVALID_SALE_STATE'

    def __init__(self, message):
        super().__init__(message, status_code=409)


class AlreadyCommittedError(PosError):
    """
    Raised when a draft's idempotency key was already finalized.

    Carries the original FinalizedSale so callers can replay it instead of
    treating the duplicate submit as a failure.
    """
    code = 'ALREADY_COMMITTED'

    def __init__(self, idempotency_key, finalized_sale):
        self.idempotency_key = idempotency_key
        self.finalized_sale = finalized_sale
        super().__init__(
            f'Esta venta ya fue procesada (ID: {finalized_sale.sale_id})',
            status_code=200,
            payload={'idempotency_key': idempotency_key}
        )


class CommitFailedError(PosError):
    """Infrastructure failure while committing; the draft is left intact."""
    code = 'COMMIT_FAILED'

    def __init__(self, message='No se pudo confirmar la venta. Intente nuevamente.', attempts=1):
        self.attempts = attempts
        super().__init__(message, status_code=503, payload={'attempts': attempts})


class UnauthorizedError(PosError):
    """Raised when no seller is attached to the request."""
    code = 'UNAUTHORIZED'

    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 401)


_VIOLATION_ERRORS = {
    'INVALID_QUANTITY': InvalidQuantityError,
    'INVALID_PRICE': InvalidPriceError,
    'EMPTY_CART': EmptyCartError,
    'ITEM_NOT_FOUND': ItemNotInDraftError,
    'INVALID_PAYMENT_METHOD': InvalidPaymentMethodError,
    'INVALID_CUSTOMER': InvalidCustomerError,
}


def violation_error(violation) -> ValidationError:
    """Translate a rejected draft transition into its exception."""
    name = getattr(violation, 'value', violation)
    error_cls = _VIOLATION_ERRORS.get(name)
    if error_cls is None:
        return ValidationError(f'Operación inválida: {name}')
    return error_cls()
