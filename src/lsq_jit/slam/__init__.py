"""Concrete factor types built on the linearization bridge."""
