"""Payment session reconciler.

Keeps payment sessions in step with the payment provider through two
independent paths: provider webhooks and a periodic status poll.
"""

__version__ = "0.1.0"
