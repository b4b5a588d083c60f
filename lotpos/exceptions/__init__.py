"""Custom exceptions for the checkout engine."""


class PosError(Exception):
    """Base exception for all checkout errors."""

    kind = 'pos_error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        return {
            'status': 'error',
            'kind': self.kind,
            'message': self.message,
            'details': dict(self.payload or ()),
        }


class ValidationError(PosError):
    """Malformed input: bad quantity, unknown product/lot, invalid discount."""

    kind = 'validation_error'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class InsufficientStockError(PosError):
    """Requested quantity exceeds what all eligible lots hold."""

    kind = 'insufficient_stock'

    def __init__(self, product_id, requested, available):
        message = (
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )
        super().__init__(message, 409, {
            'product_id': product_id,
            'requested': requested,
            'available': available,
        })
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ExpiredLotError(PosError):
    """A lot past its expiration date was about to be allocated."""

    kind = 'expired_lot'

    def __init__(self, lot_id, expiration_date):
        message = f"Lot {lot_id} expired on {expiration_date.isoformat()}"
        super().__init__(message, 409, {
            'lot_id': lot_id,
            'expiration_date': expiration_date.isoformat(),
        })
        self.lot_id = lot_id
        self.expiration_date = expiration_date


class ConcurrencyConflictError(PosError):
    """A conditional decrement lost the race for a lot's remaining units."""

    kind = 'concurrency_conflict'

    def __init__(self, lot_id, quantity):
        message = (
            f"Lot {lot_id} no longer holds {quantity} units; "
            f"another sale took them first"
        )
        super().__init__(message, 409, {'lot_id': lot_id, 'quantity': quantity})
        self.lot_id = lot_id
        self.quantity = quantity


class PersistenceError(PosError):
    """Unexpected storage failure while committing a sale."""

    kind = 'persistence_error'

    def __init__(self, message="The sale could not be stored", payload=None):
        super().__init__(message, 500, payload)
