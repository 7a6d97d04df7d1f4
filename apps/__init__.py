"""
Apps package - runnable services of the order execution engine.

- order_worker: attempt-scoped order processing driven by a retrying scheduler
"""
