"""Party Store - customer and seller existence checks (read-only)."""
from sqlalchemy.orm import Session

from storepos.models import Customer, AppUser
from storepos.exceptions import NotFoundError


def get_customer(session: Session, customer_id: int) -> Customer:
    """Get an active customer or raise NotFoundError."""
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.active.is_(True)
    ).first()

    if not customer:
        raise NotFoundError('Cliente no encontrado', payload={'customer_id': customer_id})
    return customer


def get_user(session: Session, user_id: int) -> AppUser:
    """Get an active seller or raise NotFoundError."""
    user = session.query(AppUser).filter(
        AppUser.id == user_id,
        AppUser.active.is_(True)
    ).first()

    if not user:
        raise NotFoundError('Usuario no encontrado', payload={'user_id': user_id})
    return user
