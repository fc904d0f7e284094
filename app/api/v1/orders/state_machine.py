"""
Order payment state machine
Sole writer of Order.payment_status
"""

from typing import Dict, FrozenSet, List, Set
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.models.order import OrderPaymentStatus
from app.core.exceptions import IllegalTransitionError
from app.core.monitoring import state_transitions
from . import crud

logger = logging.getLogger(__name__)

class OrderStateMachine:
    """
    Manages valid payment status transitions

    Transitions are applied as a conditional update whose predicate lists
    the legal predecessors of the target. When two requests race on the
    same order, whichever predicate matches first wins and the other
    updates zero rows.
    """

    def __init__(self):
        # Define valid transitions
        self.transitions: Dict[OrderPaymentStatus, Set[OrderPaymentStatus]] = {
            OrderPaymentStatus.AWAITING_PAYMENT: {
                OrderPaymentStatus.PAYMENT_RECEIVED,
                OrderPaymentStatus.PAYMENT_FAILED,
                OrderPaymentStatus.CANCELLED
            },
            OrderPaymentStatus.PAYMENT_FAILED: {
                OrderPaymentStatus.AWAITING_PAYMENT,  # For retry
                OrderPaymentStatus.PAYMENT_RECEIVED
            },
            OrderPaymentStatus.PAYMENT_RECEIVED: {
                OrderPaymentStatus.PARTIALLY_REFUNDED,
                OrderPaymentStatus.REFUNDED
            },
            OrderPaymentStatus.PARTIALLY_REFUNDED: {
                OrderPaymentStatus.REFUNDED
            },
            OrderPaymentStatus.REFUNDED: set(),  # Terminal state
            OrderPaymentStatus.CANCELLED: set()  # Terminal state
        }

    def can_transition(
        self,
        current_status: OrderPaymentStatus,
        new_status: OrderPaymentStatus
    ) -> bool:
        """
        Check if transition is valid

        Args:
            current_status: Current payment status
            new_status: Desired new status

        Returns:
            True if transition is allowed
        """
        return new_status in self.transitions.get(current_status, set())

    def get_valid_transitions(
        self,
        current_status: OrderPaymentStatus
    ) -> List[OrderPaymentStatus]:
        """Get list of valid transitions from current status"""
        return sorted(self.transitions.get(current_status, set()), key=lambda s: s.value)

    def allowed_predecessors(self, target: OrderPaymentStatus) -> FrozenSet[OrderPaymentStatus]:
        """Statuses from which target may be reached"""
        return frozenset(
            source for source, targets in self.transitions.items()
            if target in targets
        )

    def is_terminal_state(self, status: OrderPaymentStatus) -> bool:
        """
        Check if status is a terminal state

        Returns:
            True if no more transitions possible
        """
        return len(self.transitions.get(status, set())) == 0

    def is_refundable(self, status: OrderPaymentStatus) -> bool:
        """Check if a refund may be issued in current status"""
        return status in (
            OrderPaymentStatus.PAYMENT_RECEIVED,
            OrderPaymentStatus.PARTIALLY_REFUNDED
        )

    async def transition(
        self,
        db: AsyncSession,
        order_id: int,
        target: OrderPaymentStatus
    ) -> bool:
        """
        Move an order to target if its current status allows it

        Runs inside the caller's transaction. A refused transition is the
        expected outcome of a lost race; it is logged and never retried.

        Returns:
            True if the order row was updated
        """
        try:
            await self.require_transition(db, order_id, target)
        except IllegalTransitionError:
            logger.info(
                "Payment status transition rejected as stale or illegal: order=%s target=%s",
                order_id,
                target.value
            )
            state_transitions.labels(target=target.value, outcome="rejected").inc()
            return False

        logger.info("Order %s payment status -> %s", order_id, target.value)
        state_transitions.labels(target=target.value, outcome="applied").inc()
        return True

    async def require_transition(
        self,
        db: AsyncSession,
        order_id: int,
        target: OrderPaymentStatus
    ) -> None:
        """
        Transition or fail

        Raises:
            IllegalTransitionError: If no status leads to target or the
                conditional update matched no row
        """
        predecessors = self.allowed_predecessors(target)
        if not predecessors or not await crud.update_status_conditional(db, order_id, target, predecessors):
            raise IllegalTransitionError(order_id, target.value)

# Shared instance, the machine itself is stateless
order_state_machine = OrderStateMachine()
