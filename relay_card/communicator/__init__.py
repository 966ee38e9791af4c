"""Serial transport, controller and output formatting for the relay card chain."""
