"""Address propensity: property and propensity score ingestion with ranked search."""
