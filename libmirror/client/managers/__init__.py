"""Workspace selection and batch publish / pull operations."""
