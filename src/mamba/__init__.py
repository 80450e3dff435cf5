"""Mamba Services storefront fulfillment API."""
