"""Shared foundation (base tool, exceptions, validators) for geobatch."""
