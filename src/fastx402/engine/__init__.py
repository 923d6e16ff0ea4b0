"""Typed event engine driving the server-side payment flow."""
