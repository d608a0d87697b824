"""Clients for the remote stock price service."""
