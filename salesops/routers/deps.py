"""Shared FastAPI dependencies; tests override these on the app."""

from salesops import runtime


def get_store():
    return runtime.get_store()


def get_engine():
    return runtime.get_engine()


def get_event_bus():
    return runtime.get_event_bus()
