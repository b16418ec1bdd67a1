"""Relational store, object store and data models."""
