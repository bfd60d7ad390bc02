"""consentlog — consent event ingestion API."""
