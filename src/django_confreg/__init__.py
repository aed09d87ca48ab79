"""Reusable Django apps for conference registration, payments, and abstracts."""
