"""Losses, optimizers and the pausable training loop."""
