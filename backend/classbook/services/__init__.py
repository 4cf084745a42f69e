"""Record gateways, repositories and notification surfaces."""
