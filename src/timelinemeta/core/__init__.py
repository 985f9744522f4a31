"""Reconciliation pipeline: change sets, batch runner and approval workflow."""
