"""Frequency configuration, period and due date logic, materialization and batch runs."""
