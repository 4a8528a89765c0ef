"""
Orders app - the order collaborator of the payment core.

Holds the Order and OrderItem records the payment core reads when it
authorizes a payment, and the signals the order side emits to trigger
capture and line-item refunds. The payment core never mutates these rows.
"""
