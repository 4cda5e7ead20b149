"""Host vehicle allocation and negotiation engine."""
