"""Serverless-style HTTP functions."""
