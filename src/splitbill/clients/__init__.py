"""API clients for splitbill."""
