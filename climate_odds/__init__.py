"""Historical weather probability analysis backed by NASA POWER."""

__version__ = "0.1.0"
